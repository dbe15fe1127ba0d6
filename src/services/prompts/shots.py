"""Shot prompt vocabulary: visual styles, camera angles and cutaway variants."""

# UI style label -> keyframe prompt phrase
VISUAL_STYLES: dict[str, str] = {
    "photorealistic": "Ultra-realistic 8k photograph, highly detailed textures, sharp focus",
    "cinematic": "Cinematic film still, anamorphic lens, high production value, shallow depth of field",
    "documentary": "Raw documentary photography, 35mm film grain, authentic look",
    "anime": "Anime art style, cel-shaded, vibrant colors",
    "pixar-style": "3D animation style, Pixar-inspired, smooth rendering",
    "watercolor": "Watercolor painting, soft edges, artistic brushstrokes",
    "comic-book": "Comic book art style, bold black outlines, halftone patterns",
    "noir": "Film noir style, high contrast black and white, dramatic shadows",
    "stop motion (claymation)": "Stop motion claymation, clay texture, handmade feel",
    "default": "Cinematic lighting, photorealistic, highly detailed, 4k",
}

# UI camera label -> framing phrase
CAMERA_ANGLES: dict[str, str] = {
    "standard": "Eye-level shot",
    "heroic": "Low-angle shot from below, emphasizing stature",
    "vulnerable": "High-angle shot from above",
    "wide / establishing": "Wide-angle environmental shot, full body visibility",
    "wide": "Wide-angle environmental shot, full body visibility",
    "close & intimate": "Extreme close-up shot, shallow depth of field",
    "close up": "Extreme close-up shot, shallow depth of field",
    "chaos / action": "Dutch angle, dynamic tilted",
    "over-the-shoulder": "Over-the-shoulder shot",
    "side profile": "Side profile view",
    "top down": "Directly from above",
}

# Rotated through when a long cutaway segment is auto-split
SHOT_VARIANTS: tuple[str, ...] = (
    "establishing wide shot",
    "medium shot, detailed view",
    "close-up, intimate detail",
    "dynamic angle, movement",
    "atmospheric mood shot",
)

# Any of these in a segment's text means the keyframe may show more than one person
MULTI_SUBJECT_KEYWORDS: tuple[str, ...] = (
    "group", "crowd", "people", "team", "friends", "couple", "twins",
    "interview", "audience", "class", "students", "family",
    "two", "three", "multiple", "several", "together", "beside", "next to",
    "background character", "background person", "with a",
)

DEFAULT_CUTAWAY_VISUAL = "Cinematic b-roll"
SOLO_SAFETY_RAIL = "Single solo subject, centered in frame."
GROUP_SAFETY_RAIL = "Primary subject in focus."
IDENTITY_CUE = "Neutral unobtrusive face"


def map_style(label: str | None) -> str:
    """Style phrase for a UI label; unknown or missing labels get the default phrase."""
    return VISUAL_STYLES.get((label or "default").lower(), VISUAL_STYLES["default"])


def map_camera(label: str | None) -> str:
    """Camera phrase for a UI label; unknown labels pass through as raw text."""
    return CAMERA_ANGLES.get((label or "standard").lower(), label or "")


def needs_solo_subject(text: str) -> bool:
    lowered = text.lower()
    return not any(keyword in lowered for keyword in MULTI_SUBJECT_KEYWORDS)
