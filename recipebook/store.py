from __future__ import annotations

import asyncio
import dataclasses
import logging
import uuid
from typing import Callable, List, Optional, Set, Tuple

from .models import DecodeError, Recipe, decode_recipes, encode_recipes
from .storage import RECIPES_KEY, StorageAdapter, StorageUnavailable

logger = logging.getLogger(__name__)


class ValidationError(ValueError):
    """Raised when recipe fields do not satisfy the collection invariants."""


def _new_id() -> str:
    return uuid.uuid4().hex


def _validated_title(title: str) -> str:
    title = title.strip()
    if not title:
        raise ValidationError("A recipe needs a non-empty title.")
    return title


class RecipeStore:
    """Owns the ordered recipe collection and keeps storage in sync with it.

    Mutations update memory immediately and schedule a background write of
    the whole collection to ``"@recipes"``. Writes run one at a time, in the
    order the mutations happened. Storage failures are logged and never
    raised to callers.

    Mutating methods must be called from the event loop that owns the store.
    """

    def __init__(
        self,
        storage: StorageAdapter,
        *,
        id_factory: Callable[[], str] = _new_id,
    ) -> None:
        self._storage = storage
        self._id_factory = id_factory
        self._recipes: List[Recipe] = []
        self._loaded = False
        self._write_lock = asyncio.Lock()
        self._pending: Set[asyncio.Task[None]] = set()

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def recipes(self) -> Tuple[Recipe, ...]:
        return tuple(self._recipes)

    def __len__(self) -> int:
        return len(self._recipes)

    def get(self, recipe_id: str) -> Recipe:
        """Return a single recipe or raise :class:`KeyError` if missing."""

        return self._recipes[self._index_of(recipe_id)]

    async def load(self) -> None:
        """Hydrate the collection from storage. Runs once, before any mutation."""

        if self._loaded:
            raise RuntimeError("RecipeStore.load() has already been called.")

        try:
            raw = await self._storage.get(RECIPES_KEY)
        except StorageUnavailable:
            logger.exception("Failed to load recipes; starting with an empty collection.")
            raw = None
        else:
            if raw is None:
                logger.info("No stored recipes found; starting with an empty collection.")

        recipes: List[Recipe] = []
        if raw is not None:
            try:
                recipes = decode_recipes(raw)
            except DecodeError:
                logger.exception(
                    "Stored recipes could not be decoded (%d characters); "
                    "starting with an empty collection.",
                    len(raw),
                )
            else:
                logger.info("Loaded %d recipes.", len(recipes))

        self._recipes = recipes
        self._loaded = True

    def create(self, title: str, ingredients: str, preparation_method: str) -> Optional[Recipe]:
        """Append a new recipe and persist. Returns ``None`` for an empty title."""

        self._ensure_loaded()
        try:
            clean_title = _validated_title(title)
        except ValidationError as exc:
            logger.debug("Rejected new recipe: %s", exc)
            return None

        recipe = Recipe(
            id=self._unique_id(),
            title=clean_title,
            ingredients=ingredients.strip(),
            preparation_method=preparation_method.strip(),
        )
        self._recipes.append(recipe)
        logger.info("Created recipe %s.", recipe.id)
        self._persist()
        return recipe

    def update(
        self,
        recipe_id: str,
        title: str,
        ingredients: str,
        preparation_method: str,
    ) -> Optional[Recipe]:
        """Replace a recipe's content in place. Returns ``None`` when nothing changed."""

        self._ensure_loaded()
        try:
            index = self._index_of(recipe_id)
        except KeyError:
            logger.debug("Ignored update of unknown recipe %s.", recipe_id)
            return None
        try:
            _validated_title(title)
        except ValidationError as exc:
            logger.debug("Rejected update of recipe %s: %s", recipe_id, exc)
            return None

        # Edited text is stored as typed; only new recipes are trimmed.
        recipe = dataclasses.replace(
            self._recipes[index],
            title=title,
            ingredients=ingredients,
            preparation_method=preparation_method,
        )
        self._recipes[index] = recipe
        logger.info("Updated recipe %s.", recipe_id)
        self._persist()
        return recipe

    def delete(self, recipe_id: str) -> bool:
        """Remove a recipe if present. Unknown ids are ignored."""

        self._ensure_loaded()
        try:
            index = self._index_of(recipe_id)
        except KeyError:
            logger.debug("Ignored delete of unknown recipe %s.", recipe_id)
            return False

        del self._recipes[index]
        logger.info("Deleted recipe %s.", recipe_id)
        self._persist()
        return True

    async def flush(self) -> None:
        """Wait until every scheduled write has finished."""

        while self._pending:
            await asyncio.gather(*self._pending)

    def _persist(self) -> None:
        payload = encode_recipes(self._recipes)
        task = asyncio.get_running_loop().create_task(self._write(payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write(self, payload: str) -> None:
        # asyncio.Lock wakes waiters in FIFO order, so writes land in mutation order.
        async with self._write_lock:
            try:
                await self._storage.set(RECIPES_KEY, payload)
            except StorageUnavailable:
                logger.exception("Failed to save recipes.")
            else:
                logger.debug("Saved %d characters of recipes.", len(payload))

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            raise RuntimeError("RecipeStore.load() must complete before recipes are changed.")

    def _index_of(self, recipe_id: str) -> int:
        for index, recipe in enumerate(self._recipes):
            if recipe.id == recipe_id:
                return index
        raise KeyError(recipe_id)

    def _unique_id(self) -> str:
        existing = {recipe.id for recipe in self._recipes}
        recipe_id = self._id_factory()
        while recipe_id in existing:
            recipe_id = self._id_factory()
        return recipe_id


__all__ = ["RecipeStore", "ValidationError"]
