"""Prompt composition for FLUX try-on generation."""

from collections.abc import Iterable

from ..models import GarmentDescription
from ..utils.description_cleaner import clean_description


GENERIC_PROMPT = "Virtual try-on of the selected outfit"

IDENTITY_CLAUSE = (
    "Keep the exact same person from the input photo and preserve their face, "
    "hair, skin tone, body shape, pose and background; only change their clothing"
)

QUALITY_QUALIFIERS = (
    "high-quality fashion photography",
    "professional lighting",
    "detailed fabric texture",
    "realistic skin tone",
    "natural pose",
    "clean background",
    "8k resolution",
    "photorealistic",
)

# Free-text descriptions longer than this are reduced to category and features
MAX_SUMMARY_LENGTH = 120


class PromptBuilder:
    """Builds a single generation prompt from garment descriptions.

    Pure string composition: no I/O and no failure modes. Garments may be
    given as ``GarmentDescription`` objects or as the free text returned by
    the vision analysis service.
    """

    def __init__(self, qualifiers: Iterable[str] = QUALITY_QUALIFIERS):
        self.qualifiers = tuple(qualifiers)

    def describe_garment(self, garment: GarmentDescription | str) -> str:
        if isinstance(garment, GarmentDescription):
            return garment.to_prompt_description()
        cleaned = clean_description(garment)
        if len(cleaned["clean_text"]) <= MAX_SUMMARY_LENGTH or not cleaned["category"]:
            return cleaned["clean_text"]
        # Long listing copy: keep only what the image model can use
        if cleaned["key_features"]:
            return f"{cleaned['category']} with {', '.join(cleaned['key_features'])}"
        return cleaned["category"]

    def _summaries(self, garment_descriptions) -> list[str]:
        return [
            summary
            for summary in (self.describe_garment(g) for g in garment_descriptions or ())
            if summary
        ]

    def headline(self, garment_descriptions: Iterable[GarmentDescription | str] | None) -> str:
        """Short "Virtual try-on of ..." line used as the default prompt text."""
        summaries = self._summaries(garment_descriptions)
        if not summaries:
            return GENERIC_PROMPT
        return f"Virtual try-on of {', '.join(summaries)}"

    def build(
        self,
        garment_descriptions: Iterable[GarmentDescription | str] | None,
        style_context: str | None = None,
        base_prompt: str | None = None,
    ) -> str:
        """Compose the prompt.

        Args:
            garment_descriptions: One entry per garment, in layering order
            style_context: Caller-supplied style text (lighting, fit, mood)
            base_prompt: Optional caller prompt that leads the result

        Returns:
            Prompt string for the FLUX API
        """
        garment_descriptions = list(garment_descriptions or ())
        summaries = self._summaries(garment_descriptions)
        headline = self.headline(garment_descriptions)

        lead = (base_prompt or "").strip().rstrip(".") or headline
        sections = [lead]
        # A caller prompt that is not the default headline still gets the outfit spelled out
        if summaries and lead != headline:
            sections.append(f"Outfit: {'; '.join(summaries)}")
        sections.append(IDENTITY_CLAUSE)

        style = [style_context.strip()] if style_context and style_context.strip() else []
        return ". ".join(sections) + ". " + ", ".join(style + list(self.qualifiers))
