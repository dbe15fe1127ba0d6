"""Music Service - background music bed generation on a RunPod endpoint."""

import logging

from models.generation import MUSIC_POLL, MusicResult, PollPolicy
from services.runpod_jobs import RunPodJobError, RunPodJobRunner

logger = logging.getLogger(__name__)

DEFAULT_MUSIC_PROMPT = "Cinematic background music"

# UI genre labels -> tag prompts for the music model
MUSIC_STYLES: dict[str, str] = {
    "Rock Instrumental": "rock instrumental, electric guitar riffs, distorted guitar, bass guitar, drums, energetic, 140 bpm, live concert feel",
    "Jazz Instrumental": "jazz instrumental, acoustic piano, upright bass, saxophone, brush drums, swing rhythm, smooth, 90 bpm, lounge vibe",
    "Hip-Hop / Trap Beat": "hip hop instrumental, trap beat, 808 bass, hi hats, snare, kick drum, synth pads, 140 bpm, dark, atmospheric, street vibe",
    "Orchestral / Cinematic": "orchestral instrumental, strings, violins, cellos, brass, woodwinds, timpani, cinematic, majestic, 70 bpm, dramatic",
    "Lo-Fi / Chillhop": "lofi instrumental, chillhop, jazzy chords, dusty vinyl crackle, mellow piano, soft synths, laid-back drums, 80 bpm, relaxing, study vibe",
    "EDM / House": "edm instrumental, deep house, synth bass, kick drum four on the floor, hi hats, synth plucks, 128 bpm, dance club, hypnotic",
    "Ambient / Soundscape": "ambient instrumental, drones, evolving textures, synth pads, slow tempo, atmospheric, meditative, 60 bpm, ethereal",
    "Reggae / Dub": "reggae instrumental, dub groove, offbeat guitar skank, bass groove, drums, echo effects, relaxed, 85 bpm, island vibe",
    "Funk / Groove": "funk instrumental, slap bass, electric guitar, clavinet, brass stabs, groovy drums, upbeat, 110 bpm, danceable",
    "Country / Folk": "country instrumental, acoustic guitar, banjo, fiddle, upright bass, light percussion, warm, 95 bpm, rustic, storytelling vibe",
    "Blues": "blues instrumental, electric guitar, walking bass, harmonica, shuffle drums, soulful, 85 bpm, smoky bar vibe",
    "Metal": "metal instrumental, distorted guitars, double kick drums, bass, aggressive riffs, fast tempo, 180 bpm, heavy and dark",
    "Techno": "techno instrumental, pounding kick, arpeggiated synths, dark bassline, industrial, 125 bpm, underground rave vibe",
    "Latin / Salsa": "latin instrumental, salsa rhythm, congas, bongos, brass, piano montuno, bass, upbeat, 95 bpm, lively",
    "R&B / Soul": "r&b instrumental, electric piano, smooth bass, soulful guitar, mellow drums, romantic, 85 bpm, groovy",
    "Gospel": "gospel instrumental, organ, piano, choir pads, clapping rhythm, uplifting, 80 bpm, soulful, church vibe",
    "Indian Classical / Sitar": "indian instrumental, sitar, tabla, tanpura drone, meditative, 70 bpm, spiritual, raga inspired",
    "African Percussion": "african instrumental, djembe, talking drum, congas, rhythmic ensemble, tribal, 100 bpm, primal, energetic",
    "Celtic / Folk": "celtic instrumental, flute, bagpipes, fiddle, harp, bodhran, traditional, 95 bpm, mystical",
    "Synthwave / Retro": "synthwave instrumental, retro synths, arpeggios, electronic drums, nostalgic, 100 bpm, 1980s vibe",
}


class MusicServiceError(Exception):
    """Error from Music service."""

    pass


def map_music_style(label: str | None) -> str | None:
    """Expand a UI genre label into a tag prompt; unknown labels pass through."""
    if not label:
        return None
    return MUSIC_STYLES.get(label, label)


class MusicService:
    """Generates instrumental music beds sized to a video."""

    def __init__(
        self,
        runner: RunPodJobRunner,
        endpoint_id: str,
        poll_policy: PollPolicy = MUSIC_POLL,
    ):
        self.runner = runner
        self.endpoint_id = endpoint_id
        self.poll_policy = poll_policy

    def is_configured(self) -> bool:
        """Check if the service is configured."""
        return bool(self.runner.is_configured() and self.endpoint_id)

    async def generate(
        self,
        prompt: str,
        duration_sec: float,
        tags: str | None = None,
        seed: int | None = None,
    ) -> MusicResult:
        """Generate music of roughly ``duration_sec`` seconds.

        Raises:
            MusicServiceError: If generation fails or returns no audio.
        """
        if not self.is_configured():
            raise MusicServiceError("Music generation not configured (RUNPOD_MUSIC_ENDPOINT_ID)")

        payload = {"input": {"tags": tags or prompt, "duration": duration_sec, "seed": seed}}
        logger.info(f"Starting music generation: {prompt[:60]} ({duration_sec:.1f}s)")

        try:
            job = await self.runner.submit(self.endpoint_id, payload)
            output = await self.runner.poll(job, self.poll_policy)
        except RunPodJobError as e:
            raise MusicServiceError(f"Music generation failed: {e}")

        audio = output.get("audio") if isinstance(output, dict) else None
        if not isinstance(audio, dict) or not audio.get("url"):
            raise MusicServiceError("Music generation completed but returned no audio URL")

        return MusicResult(
            audio_url=audio["url"],
            duration_sec=float(audio.get("duration_sec") or duration_sec),
            job_id=job.job_id,
        )
