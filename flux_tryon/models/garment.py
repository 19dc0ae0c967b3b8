"""Garment description model."""

from pydantic import BaseModel, Field

from ..utils.description_cleaner import clean_description


class GarmentDescription(BaseModel):
    """Structured description of one garment, as produced by vision analysis."""

    category: str = Field(description="e.g., 'maxi dress', 'blazer', 'jeans'")
    color: str | None = Field(default=None, description="Main color of the garment")
    fabric: str | None = Field(default=None, description="e.g., 'satin', 'denim'")
    pattern: str | None = Field(default=None, description="e.g., 'solid', 'floral', 'striped'")
    fit: str | None = Field(default=None, description="e.g., 'fitted', 'oversized', 'A-line'")
    details: list[str] = Field(default_factory=list)
    notes: str = Field(default="", description="Free text from the analysis service")

    def to_prompt_description(self) -> str:
        """Generate a text description suitable for the prompt builder."""
        parts = []

        # Color + category (e.g., "dusty turquoise maxi dress")
        if self.color:
            parts.append(f"{self.color} {self.category}")
        else:
            parts.append(self.category)

        features = []
        if self.pattern and self.pattern.lower() != "solid":
            features.append(f"{self.pattern} pattern")
        if self.fabric:
            features.append(f"{self.fabric} fabric")
        if self.fit:
            features.append(f"{self.fit} fit")
        for detail in self.details[:2]:
            if detail not in features:
                features.append(detail)

        if features:
            parts.append(f"with {', '.join(features[:3])}")

        description = " ".join(parts)
        notes = clean_description(self.notes)["clean_text"]
        if notes:
            description = f"{description} ({notes})"
        return description
