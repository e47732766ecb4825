from typing import Dict, List, Literal

from pydantic import BaseModel, ConfigDict, Field

APP_TITLE = "Professional Persona AI"
APP_SUBTITLE = "Elevate your professional identity with high-fidelity AI portrait transformation."

# --- 1. Axis Types ---
OutfitType = Literal['suit', 'dress', 'casual', 'tee', 'coat', 'knitwear', 'leather', 'default']
HairstyleType = Literal['updo', 'waves', 'bob', 'natural', 'messy_bun', 'braid', 'default']
BackgroundType = Literal['berlin', 'tokyo', 'ny', 'paris', 'studio']
CameraAngleType = Literal['eye_level', 'low_angle', 'high_angle', 'three_quarter', 'default']
ColorPaletteType = Literal['monochromatic', 'analogous', 'complementary', 'default']
ExpressionType = Literal['natural', 'smile', 'serious', 'smirk', 'default']


class TransformationConfig(BaseModel):
    """The six style selections for one render. Immutable; derive a new one to change it."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    outfit: OutfitType = 'suit'
    hairstyle: HairstyleType = 'waves'
    background: BackgroundType = 'berlin'
    camera_angle: CameraAngleType = Field('eye_level', alias='cameraAngle')
    color_palette: ColorPaletteType = Field('default', alias='colorPalette')
    expression: ExpressionType = 'natural'


# --- 2. Phrase Tables ---
OUTFIT_DESCRIPTIONS: Dict[str, str] = {
    "suit": "a high-end, perfectly tailored charcoal or navy business suit with a crisp white professional shirt",
    "dress": "a sophisticated, structured professional power dress in a solid elegant tone with a modern silhouette",
    "casual": "a smart-casual modern blazer over a premium silk or knit top, looking contemporary and approachable",
    "tee": "a premium well-fitted minimalist high-quality t-shirt and clean dark-wash jeans, creating a polished 'tech-creative' casual look",
    "coat": "a formal, high-end tailored executive wool coat in a neutral tone, layered over professional attire",
    "knitwear": "a premium, high-quality cashmere or fine-knit turtleneck, looking intelligent, soft, and approachable",
    "leather": "a sleek, modern, high-quality professional leather jacket, projecting a creative and bold modern leadership style",
    "default": "high-end tailored blazer or structured professional wear",
}

EXPRESSION_DESCRIPTIONS: Dict[str, str] = {
    "natural": "a natural, calm, and neutral professional facial expression",
    "smile": "a warm, genuine, and approachable smile with a friendly professional spark in the eyes",
    "serious": "a serious, focused, and analytical expression, projecting determination and deep expertise",
    "smirk": "a subtle, confident smirk, projecting intelligence, wit, and self-assured leadership",
    "default": "a polished, natural professional expression",
}

HAIRSTYLE_DESCRIPTIONS: Dict[str, str] = {
    "updo": "a polished, elegant professional updo, looking modern and clean",
    "waves": "soft, loose professional waves with a healthy editorial sheen and natural flow",
    "bob": "a sleek, sharp professional bob with minimalist clean lines",
    "natural": "beautifully styled natural hair texture with professional definition and shine",
    "messy_bun": "a chic, effortless but professional messy bun, looking soft, voluminous, and modern with a few loose tendrils",
    "braid": "a sophisticated, loose side braid or intricate crown braid, looking elegant, feminine, and professionally styled",
    "default": "a polished, professional hairstyle that complements the face",
}

BACKGROUND_DESCRIPTIONS: Dict[str, str] = {
    "berlin": "Set in Berlin with clean urban lines, modern glass architecture, and minimalist European design.",
    "tokyo": "Set in Tokyo with a breathtaking view of the Shinjuku skyline, featuring modern skyscrapers and a high-tech global urban atmosphere.",
    "ny": "Set in the New York Financial District, featuring classic granite architecture and the iconic energy of Wall Street with a shallow depth of field.",
    "paris": "Set on a chic Parisian cafe terrace with elegant classic architecture and soft, warm European morning light in the background.",
    "studio": "Set in a high-end professional photography studio with a clean, solid minimalist backdrop and perfect professional softbox lighting.",
}

CAMERA_ANGLE_DESCRIPTIONS: Dict[str, str] = {
    "eye_level": "captured at eye-level, direct and engaging perspective",
    "low_angle": "captured from a slightly lower angle to project confidence and subtle authority",
    "high_angle": "captured from a slightly higher angle for a friendly and approachable look",
    "three_quarter": "three-quarter view perspective for a dynamic and professional profile",
    "default": "captured at eye-level",
}

COLOR_PALETTE_DESCRIPTIONS: Dict[str, str] = {
    "monochromatic": "a minimalist monochromatic palette focusing on subtle tonal shifts for a high-fashion, cohesive professional aesthetic",
    "analogous": "a balanced analogous palette using closely related professional hues for a smooth, sophisticated visual flow",
    "complementary": "a bold complementary palette utilizing sophisticated contrasting accents to make the subject pop against the environment",
    "default": "a professional and balanced color palette",
}

IMAGE_EXTENSIONS: Dict[str, str] = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/webp": ".webp",
    "image/gif": ".gif",
}

# Background is the only axis without a "default" entry.
BACKGROUND_FALLBACK = "berlin"

# Selector chip labels. Values without a chip fall back to a title-cased label.
OPTION_LABELS: Dict[str, Dict[str, str]] = {
    "expression": {
        "natural": "Natural",
        "smile": "Warm Smile",
        "serious": "Serious / Focus",
        "smirk": "Confident Smirk",
    },
    "outfit": {
        "suit": "Business Suit",
        "dress": "Power Dress",
        "coat": "Executive Coat",
        "knitwear": "Premium Knit",
        "leather": "Leather Studio",
        "casual": "Smart Casual",
        "tee": "Minimalist Tee",
    },
    "background": {
        "berlin": "Berlin District",
        "tokyo": "Tokyo View",
        "ny": "NY Financial",
        "paris": "Parisian Cafe",
        "studio": "Blank Studio",
    },
    "cameraAngle": {
        "eye_level": "Eye-Level",
        "three_quarter": "Dynamic 3/4",
    },
    "colorPalette": {
        "default": "Natural",
        "monochromatic": "Monochrome",
    },
}

_AXIS_TABLES: Dict[str, Dict[str, str]] = {
    "outfit": OUTFIT_DESCRIPTIONS,
    "hairstyle": HAIRSTYLE_DESCRIPTIONS,
    "background": BACKGROUND_DESCRIPTIONS,
    "cameraAngle": CAMERA_ANGLE_DESCRIPTIONS,
    "colorPalette": COLOR_PALETTE_DESCRIPTIONS,
    "expression": EXPRESSION_DESCRIPTIONS,
}

# --- 3. Invariant Clauses ---
IDENTITY_CLAUSE = (
    "Using the provided image as the primary reference, preserve the person's facial features, "
    "skin tone, body structure, and identity with 100% accuracy."
)

NO_DISTORTION_CLAUSE = (
    "Strictly do not alter facial identity or exaggerate features. No distortion. "
    "Preserve all unique facial characteristics of the person in the original photo "
    "including eye shape, nose structure, and mouth proportions."
)


def _describe(table: Dict[str, str], value: str, fallback: str = "default") -> str:
    return table.get(value, table[fallback])


# --- 4. Prompt Composition ---
def compose(
    outfit: str,
    hairstyle: str,
    background: str,
    camera_angle: str,
    color_palette: str,
    expression: str,
) -> str:
    """
    Build the image-generation instruction for one set of selections.

    Never fails: a value missing from its phrase table resolves to that axis's
    "default" phrase (the Berlin phrase for background).
    """
    outfit_desc = _describe(OUTFIT_DESCRIPTIONS, outfit)
    hair_desc = _describe(HAIRSTYLE_DESCRIPTIONS, hairstyle)
    bg_desc = _describe(BACKGROUND_DESCRIPTIONS, background, BACKGROUND_FALLBACK)
    angle_desc = _describe(CAMERA_ANGLE_DESCRIPTIONS, camera_angle)
    color_desc = _describe(COLOR_PALETTE_DESCRIPTIONS, color_palette)
    expr_desc = _describe(EXPRESSION_DESCRIPTIONS, expression)

    return f"""{IDENTITY_CLAUSE}

Transform the image into a polished, high-end professional portrait with a confident, globally relevant presence.

Facial Presence: The subject must have {expr_desc}. Maintain absolute likeness to the original face.
Overall Aesthetic: {color_desc}.
Style: modern, intelligent, calm authority, high-fidelity professional render.
Outfit: {outfit_desc} suitable for an international professional context.
Hairstyle: {hair_desc}, projecting a sophisticated and polished energy with feminine style.
Lighting: natural, soft, cinematic daylight or professional studio lighting depending on the location, with clean contrast and editorial quality.
Image quality: ultra-realistic, 8k resolution, editorial-grade photography.
Camera: {angle_desc}, shallow depth of field, sharp focus on subject, subtle professional background blur (bokeh).
Background: {bg_desc}
Mood: confident, thoughtful, globally connected, trustworthy, and analytical.

{NO_DISTORTION_CLAUSE}"""


def compose_prompt(config: TransformationConfig) -> str:
    return compose(
        config.outfit,
        config.hairstyle,
        config.background,
        config.camera_angle,
        config.color_palette,
        config.expression,
    )


def download_filename(background: str, expression: str, mime_type: str = "image/png") -> str:
    extension = IMAGE_EXTENSIONS.get(mime_type, ".png")
    return f"persona-{background}-{expression}{extension}"


def option_label(axis: str, value: str) -> str:
    return OPTION_LABELS.get(axis, {}).get(value, value.replace("_", " ").title())


def list_options() -> Dict[str, List[Dict[str, str]]]:
    """Every selectable value per axis, keyed by the camelCase axis name."""
    return {
        axis: [{"value": value, "label": option_label(axis, value)} for value in table]
        for axis, table in _AXIS_TABLES.items()
    }
