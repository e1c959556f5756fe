"""Server-side instruction templates for the vision and image models.

Every table is keyed by the option enum so each option maps to exactly
one prompt fragment. Nothing in this module is ever returned to clients.
"""

from __future__ import annotations

from dataclasses import dataclass
from textwrap import dedent
from typing import Dict

from ..common.models.options import (
    ArtFormat,
    ArtStyle,
    BackgroundTheme,
    FidelityMode,
    StanceStyle,
    VehicleCategory,
)


ANALYZE_VEHICLE_PROMPT = dedent(
    """
    Act as an Expert Automotive Analyst and Car Culture Specialist. Analyze this vehicle with EXTREME attention to detail.

    1. **Identity:** Make, Model, Year, Color.

    2. **Category Classification:** Determine which category best fits:
       - "Off-Road" (SUVs with mods, lifted trucks, 4x4s, overlanders, Land Rovers, Jeeps, Toyota 4Runners, etc.)
       - "Sports" (coupes, hot hatches, muscle cars, performance vehicles)
       - "Luxury" (premium sedans, executive SUVs like Range Rover Sport, BMW X5, etc.)
       - "Classic" (vintage/retro vehicles, pre-1990)
       - "Everyday" (hatchbacks, sedans, minivans, economy cars)

    3. **Is Off-Road:** Boolean - does this vehicle have off-road modifications OR is it an overland-capable 4x4 vehicle by nature?

    4. **Orientation:** Exactly which side is shown (Driver Side/Passenger Side) and which way is it facing (Left/Right).

    5. **Geometry Audit:** Silhouette, Window Layout, Lights, Bumpers.

    6. **WHEEL & TIRE AUDIT (CRITICAL - BE EXTREMELY PRECISE):**
       Look VERY carefully at the wheels and tires. Answer these questions with what you ACTUALLY SEE:

       - hasWhiteLettering: Do the tires have WHITE LETTERS on the sidewall? (true/false)
         * Look for brand names like "BFGoodrich", "Cooper", "Goodyear" in white
         * If NO white text is visible on the tire sidewall -> false
         * If you see white text/letters on the tire -> true

       - hasCenterCaps: Are there center caps visible on the wheels? (true/false)

       - centerCapColor: If center caps exist, what color are they? ("black", "silver", "body-color", "chrome", "none visible")

       - wheelColor: What is the main color of the wheels? ("black", "silver", "gray", "bronze", "white", "body-color", "chrome")

       - wheelFinish: What is the wheel finish? ("matte", "gloss", "machined", "polished")

       - wheelType: Are these stock or aftermarket? ("stock OEM", "aftermarket alloy", "steel wheels", "unknown")

       BE HONEST: If you cannot clearly see a detail, say "not visible" rather than guessing.

    7. **INSTALLED ACCESSORIES (CRITICAL):** List EVERY visible accessory and modification installed on this specific vehicle. Be extremely thorough:
       - Roof: roof rack, roof box, rooftop tent, awning, light bars, antennas
       - Exterior: mudguards/mud flaps, fender flares, side steps, running boards, rock sliders
       - Front: bull bar, nudge bar, winch, auxiliary lights, skid plate
       - Rear: spare tire carrier, bike rack, ladder, rear bumper, tow hitch
       - Windows: window guards, rain deflectors, tinting
       - Other: snorkel, jerry cans, recovery boards, decals, stickers, badges
       ONLY list what you can ACTUALLY SEE. Do not assume or guess.

    8. **Character Marks:** Unique identifiers: stickers, decals, brand logos, mud splashes, dirt patterns, scratches.

    9. **Popular Modifications:** Use Google Search to find what enthusiasts commonly do to customize this specific make/model. List 4-5 popular mods.

    10. **Popular Wheels:** Use Google Search to find the most popular aftermarket wheel brands/styles that enthusiasts put on this specific make/model. List 2-3 popular wheel options with brand and style.

    11. **Suggested Stance:** Based on the vehicle category:
        - For Off-Road vehicles: suggest "Stock", "Lifted + AT", or "Steelies + Mud"
        - For other vehicles: suggest "Stock" or "Lowered + Wheels"

    12. **Suggested Background:** Based on the vehicle type, suggest the best background theme.

    Return JSON.
    """
).strip()


def _string(description: str = "") -> dict:
    return {"type": "STRING", "description": description} if description else {"type": "STRING"}


ANALYZE_VEHICLE_SCHEMA: dict = {
    "type": "OBJECT",
    "properties": {
        "make": _string(),
        "model": _string(),
        "year": _string(),
        "color": _string(),
        "category": {
            "type": "STRING",
            "enum": [c.value for c in VehicleCategory],
            "description": "The vehicle category classification",
        },
        "isOffroad": {
            "type": "BOOLEAN",
            "description": "True if vehicle has off-road mods or is an overland-capable 4x4 vehicle",
        },
        "orientation": _string(),
        "facingDirection": _string(),
        "mods": {"type": "ARRAY", "items": _string()},
        "installedAccessories": {
            "type": "ARRAY",
            "items": _string(),
            "description": "Complete list of all visible accessories and modifications installed on this specific vehicle",
        },
        "geometryAudit": {
            "type": "OBJECT",
            "properties": {"bodyShape": _string(), "windowLayout": _string(), "frontDetail": _string()},
        },
        "wheelAudit": {
            "type": "OBJECT",
            "description": "Detailed audit of wheels and tires - BE PRECISE about what is actually visible",
            "properties": {
                "hasWhiteLettering": {
                    "type": "BOOLEAN",
                    "description": "TRUE if white letters/text are visible on tire sidewalls, FALSE if not",
                },
                "hasCenterCaps": {"type": "BOOLEAN", "description": "TRUE if center caps are visible on wheels"},
                "centerCapColor": _string("Color of center caps if visible (black, silver, chrome, body-color, none visible)"),
                "wheelColor": _string("Main color of the wheels (black, silver, gray, bronze, white, chrome)"),
                "wheelFinish": _string("Wheel finish (matte, gloss, machined, polished)"),
                "wheelType": _string("Type of wheels (stock OEM, aftermarket alloy, steel wheels, unknown)"),
            },
        },
        "visualFeatures": {
            "type": "OBJECT",
            "properties": {"roofGear": _string(), "wheelStyle": _string(), "distinctiveMarkings": _string()},
        },
        "popularMods": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {"id": _string(), "name": _string(), "description": _string()},
            },
        },
        "popularWheels": {
            "type": "ARRAY",
            "items": {"type": "OBJECT", "properties": {"name": _string(), "style": _string()}},
        },
        "suggestedStance": {"type": "STRING", "enum": [s.value for s in StanceStyle]},
        "suggestedBackground": {"type": "STRING", "enum": [b.value for b in BackgroundTheme]},
    },
    "required": ["make", "model", "year", "color", "category", "isOffroad", "orientation", "facingDirection"],
}


BACKGROUND_PROMPTS: Dict[BackgroundTheme, str] = {
    BackgroundTheme.SOLID: "Clean studio solid matte background in neutral dark tone. Subtle reflective floor.",
    BackgroundTheme.GRADIENT: "Soft gradient background, dark to lighter tones. Studio floor.",
    BackgroundTheme.MOUNTAINS: "Geometric mountain silhouettes with large minimalist Sun circle. Rocky gravel ground.",
    BackgroundTheme.FOREST: "Nordic pine silhouettes in layered forest greens. Dark earth clearing foreground.",
    BackgroundTheme.DESERT: "Vector canyon mesas and sand dunes in terracotta tones. Sandy ground.",
    BackgroundTheme.TOPO: "Technical topographic contour lines on matte background. Minimal ground line.",
    BackgroundTheme.CITY: "Minimalist city skyline silhouette in cool blue-gray. Asphalt street.",
    BackgroundTheme.NEON: "Dark urban nightscape with neon glows. Wet asphalt with reflections.",
    BackgroundTheme.GARAGE: "Clean automotive studio with professional lighting. Polished concrete floor.",
}

STANCE_PROMPTS: Dict[StanceStyle, str] = {
    StanceStyle.STOCK: "Keep EXACT wheel design, tire size, and suspension height from source.",
    StanceStyle.LIFTED: "Add 2-3 inch lift with aggressive AT tires. Increase tire sidewall.",
    StanceStyle.STEELIES: "Black steel wheels (steelies) with 33-inch mud-terrain tires. 2-inch lift.",
    StanceStyle.LOWERED: "Lower 1-2 inches, sportier stance. Add aftermarket wheels with low profile tires.",
}

LOWERED_WITH_WHEEL_PROMPT = "Lower 1-2 inches, sportier stance. Add {wheel} with low profile tires."

FIDELITY_PROMPTS: Dict[FidelityMode, str] = {
    FidelityMode.EXACT_MATCH: "EXACT MATCH: Include ALL stickers, decals, mud, dirt, scratches.",
    FidelityMode.CLEAN_BUILD: "CLEAN BUILD: Keep all mods/stickers but remove dirt and imperfections.",
    FidelityMode.FACTORY_FRESH: "FACTORY FRESH: Remove all aftermarket mods. Pure stock OEM look.",
}

STYLE_PROMPTS: Dict[ArtStyle, str] = {
    ArtStyle.POSTER: "Editorial Poster Art aesthetic.",
    ArtStyle.STICKER: "Vector Badge/Sticker aesthetic.",
}

AS_PHOTOGRAPHED_PROMPT = (
    "Keep the EXACT same angle and perspective as the source photo. "
    "Preserve orientation: {orientation}, facing {facing}."
)
SIDE_PROFILE_PROMPT = "Convert to a CLEAN SIDE PROFILE view (90-degree lateral). Facing {facing}."

ACCESSORIES_PROMPT = "INSTALLED ACCESSORIES (include these): {items}"
VIRTUAL_MODS_PROMPT = "ADD VIRTUAL MODS: {items}"

RULE = "═" * 59

WHEEL_AUDIT_HEADER = f"{RULE}\nWHEEL & TIRE AUDIT - FOLLOW EXACTLY:\n{RULE}"
WHITE_LETTERING_YES = "TIRE LETTERING: YES - Include white letters on tire sidewalls as seen in source"
WHITE_LETTERING_NO = "TIRE LETTERING: NO - DO NOT add any white letters on tires! Keep sidewalls plain black."
CENTER_CAPS_YES = "CENTER CAPS: YES - Include {color} center caps"
CENTER_CAPS_NO = "CENTER CAPS: NO or not visible - Do not add center caps"
WHEEL_COLOR_LINE = "WHEEL COLOR: {color} with {finish} finish"
WHEEL_TYPE_LINE = "WHEEL TYPE: {wheel_type}"

FAITHFUL_REPRODUCTION_BLOCK = dedent(
    f"""
    {RULE}
    CRITICAL: 100% FAITHFUL REPRODUCTION
    {RULE}

    GOLDEN RULE: "If it's in the photo, include it. If it's NOT in the photo, DON'T invent it."

    REPRODUCE EXACTLY:
    ✓ WHEELS: Copy the exact wheel design, color, and style from the source
      - Follow the WHEEL & TIRE AUDIT above EXACTLY
      - NO white lettering on tires unless WHEEL AUDIT says YES
      - NO colored center caps unless WHEEL AUDIT says YES
      - NO aftermarket wheel style if source has stock wheels
    ✓ DIRT/MUD: Same amount and intensity as source - don't exaggerate or minimize
    ✓ TEXT/LOGOS: Reproduce exactly as shown (e.g., "BEACH", "California", badges)
      - If you can't read it clearly, reproduce it as best you can
    ✓ ACCESSORIES: Include ALL visible accessories exactly as they appear
    ✓ COLORS: Exact vehicle colors from source

    DO NOT INVENT:
    ✗ White sidewall lettering on tires (unless WHEEL AUDIT explicitly says YES!)
    ✗ Red/colored wheel center caps that don't exist
    ✗ Extra dirt, mud, or scratches beyond what's shown
    ✗ Bicycles, cargo, or items not in the source
    ✗ People, animals, or figures
    ✗ Logos, badges, or text that don't exist

    If rack is EMPTY in source → draw it EMPTY
    If rack has items → reproduce ONLY those exact items

    {RULE}
    """
).strip()

STYLE_HEADER = "**STYLE:** High-Fidelity Technical Vector Art. Clean lines, matte cel-shading."
STYLE_FOOTER = "Sharp vector paths, no photo textures. Premium wallpaper quality."


@dataclass(frozen=True)
class FormatSpec:
    aspect_ratio: str
    render_aspect_ratio: str
    orientation: str
    composition: str
    resolution: str


FORMAT_SPECS: Dict[ArtFormat, FormatSpec] = {
    ArtFormat.PHONE: FormatSpec(
        aspect_ratio="9:19.5",
        render_aspect_ratio="9:16",
        orientation="VERTICAL/PORTRAIT (9:19.5, extra tall for modern phones)",
        composition=dedent(
            f"""
            PHONE WALLPAPER COMPOSITION - MODERN SMARTPHONE FORMAT:
            {RULE}
            CRITICAL REQUIREMENTS
            {RULE}

            1. PURE ART ONLY - NO UI ELEMENTS:
               ✗ DO NOT draw phone status bars, signal icons, battery indicators
               ✗ DO NOT draw time, date, or any text overlays
               ✗ DO NOT simulate a phone screen or device frame
               ✗ The image must be PURE ARTWORK with NO interface elements

            2. VEHICLE SIZE AND POSITION:
               - Vehicle size: 30-35% of image WIDTH
               - Vehicle position: LOWER-CENTER (around 55-60% from top)
               - More sky/scenery ABOVE the vehicle
               - Less ground BELOW the vehicle
               - This allows room for phone clock and widgets at top

            3. COMPOSITION:
               - Epic landscape with the vehicle as a focal point
               - PERFECTLY CENTERED - vehicle in the exact middle
               - Generous margins on all sides (top, bottom, left, right)
               - Think: poster with the subject floating in the center

            {RULE}
            """
        ).strip(),
        resolution="1080x2340 (Modern smartphone - iPhone/Android)",
    ),
    ArtFormat.DESKTOP: FormatSpec(
        aspect_ratio="16:9",
        render_aspect_ratio="16:9",
        orientation="HORIZONTAL/LANDSCAPE (16:9, wider than tall)",
        composition=dedent(
            """
            DESKTOP WALLPAPER COMPOSITION:
            - Vehicle centered, slightly lower (55% from top)
            - Wide panoramic feel
            - Car size: 40-45% of image width
            - Space on sides for desktop icons
            """
        ).strip(),
        resolution="3840x2160 (4K UHD - Ultra HD quality)",
    ),
    ArtFormat.PRINT: FormatSpec(
        aspect_ratio="4:3",
        render_aspect_ratio="4:3",
        orientation="HORIZONTAL/LANDSCAPE (4:3, classic photo ratio)",
        composition=dedent(
            """
            PRINT COMPOSITION:
            - Vehicle centered (50% from top)
            - Balanced margins for framing
            - Car size: 50% of image width
            - High detail for large format printing
            """
        ).strip(),
        resolution="4096x3072 (4K print quality - suitable for large format printing)",
    ),
}


FIRST_GENERATION_TEMPLATE = """**FORMAT:** {orientation}
**RESOLUTION:** {resolution}

{composition}

{base}

**IMPORTANT:** This artwork will be used as the STYLE REFERENCE for other aspect ratios.
Create a distinctive, cohesive visual style that can be replicated.

**OUTPUT:** Generate a high-quality {aspect_ratio} vector art wallpaper."""


FOLLOW_UP_TEMPLATE = """**CRITICAL: MATCH THE STYLE OF THE REFERENCE ART EXACTLY**

I'm providing TWO images:
1. The REFERENCE ART (first image) - This is the style you MUST match
2. The ORIGINAL PHOTO (second image) - The source vehicle

Your task: Create the SAME artwork but in {aspect_ratio} aspect ratio.

{rule}
VEHICLE PROPORTIONS - DO NOT DISTORT
{rule}

The vehicle in your output MUST have the EXACT SAME PROPORTIONS as in the reference art.

DO NOT:
✗ Stretch the vehicle horizontally to fill wider formats
✗ Compress the vehicle vertically
✗ Change the width-to-height ratio of the car
✗ Make the car look "squashed" or "elongated"

DO:
✓ Keep the vehicle's proportions IDENTICAL to the reference
✓ Add MORE BACKGROUND to fill the new aspect ratio
✓ Extend the sky, ground, or scenery - NOT the car
✓ The car should look like it was copy-pasted from the reference

{rule}

STYLE MATCHING REQUIREMENTS:
- EXACT same color palette as reference
- EXACT same artistic style and line work
- EXACT same background elements (extend them, don't change them)
- EXACT same level of detail and shading
- The vehicle should be PIXEL-PERFECT identical in proportions
- EXACT same CONDITION of the vehicle (if it has mud, dirt, scratches in the reference, include them!)
- If the reference shows a dirty/muddy vehicle, ALL outputs MUST show the same dirt/mud

**FORMAT:** {orientation}
**RESOLUTION:** {resolution}

{composition}

{base}

**OUTPUT:** Generate a {aspect_ratio} image with the vehicle having IDENTICAL proportions to the reference. Extend the BACKGROUND to fill the new aspect ratio, NOT the car."""
