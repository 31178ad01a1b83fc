from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, List, Optional


class DecodeError(ValueError):
    """Raised when a persisted recipe collection cannot be parsed."""


@dataclass(frozen=True)
class Recipe:
    """Domain object representing a stored recipe."""

    id: str
    title: str
    ingredients: str = ""
    preparation_method: str = ""

    def to_dict(self) -> dict[str, str]:
        return {
            "id": self.id,
            "title": self.title,
            "ingredients": self.ingredients,
            "preparationMethod": self.preparation_method,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Recipe":
        """Build a recipe from its stored form, ignoring unknown keys."""

        recipe_id = data.get("id")
        title = data.get("title")
        ingredients = data.get("ingredients", "")
        preparation_method = data.get("preparationMethod", "")

        if not isinstance(recipe_id, str) or not recipe_id:
            raise DecodeError(f"Recipe entry has no usable id: {recipe_id!r}")
        for name, value in (
            ("title", title),
            ("ingredients", ingredients),
            ("preparationMethod", preparation_method),
        ):
            if not isinstance(value, str):
                raise DecodeError(f"Recipe '{recipe_id}' has a non-text {name}.")

        return cls(
            id=recipe_id,
            title=title,
            ingredients=ingredients,
            preparation_method=preparation_method,
        )


class ViewMode(str, Enum):
    LIST = "list"
    FORM = "form"


@dataclass
class ViewState:
    """Transient UI state: the current mode plus the form's working copy."""

    mode: ViewMode = ViewMode.LIST
    title: str = ""
    ingredients: str = ""
    preparation_method: str = ""
    editing_id: Optional[str] = None

    @property
    def is_editing(self) -> bool:
        return self.editing_id is not None


def encode_recipes(recipes: Iterable[Recipe]) -> str:
    return json.dumps([recipe.to_dict() for recipe in recipes], ensure_ascii=False)


def decode_recipes(text: str) -> List[Recipe]:
    """Parse the stored collection, raising :class:`DecodeError` on bad data."""

    try:
        data = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise DecodeError(f"Stored recipes are not valid JSON: {exc}") from exc

    if not isinstance(data, list):
        raise DecodeError(f"Stored recipes must be a JSON array, got {type(data).__name__}.")

    recipes: List[Recipe] = []
    seen: set[str] = set()
    for entry in data:
        if not isinstance(entry, dict):
            raise DecodeError(f"Recipe entries must be objects, got {type(entry).__name__}.")
        recipe = Recipe.from_dict(entry)
        if recipe.id in seen:
            raise DecodeError(f"Duplicate recipe id '{recipe.id}'.")
        seen.add(recipe.id)
        recipes.append(recipe)
    return recipes


__all__ = [
    "DecodeError",
    "Recipe",
    "ViewMode",
    "ViewState",
    "decode_recipes",
    "encode_recipes",
]
