from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional

from .models import Recipe, ViewMode, ViewState
from .store import RecipeStore

logger = logging.getLogger(__name__)

Confirm = Callable[[Recipe], Awaitable[bool]]


class InvalidTransition(RuntimeError):
    """Raised when a gesture is not allowed in the current view mode."""


async def _decline(recipe: Recipe) -> bool:
    return False


def confirmation_message(recipe: Recipe) -> str:
    return f'Are you sure you want to delete the recipe "{recipe.title}"?'


class ViewController:
    """Two-state (list/form) UI state machine on top of a :class:`RecipeStore`.

    Parameters
    ----------
    store:
        The recipe store every submit and delete is forwarded to.
    confirm:
        Default confirmation primitive awaited before a delete. It receives
        the recipe and returns ``True`` to go ahead. When omitted, deletes are
        declined unless a confirmation is passed to :meth:`request_delete`.
    """

    def __init__(self, store: RecipeStore, *, confirm: Optional[Confirm] = None) -> None:
        self._store = store
        self._confirm = confirm or _decline
        self._state = ViewState()

    @property
    def state(self) -> ViewState:
        return self._state

    @property
    def mode(self) -> ViewMode:
        return self._state.mode

    def start_add(self) -> None:
        self._require(ViewMode.LIST, "start adding a recipe")
        self._state = ViewState(mode=ViewMode.FORM)

    def start_edit(self, recipe_id: str) -> None:
        self._require(ViewMode.LIST, "start editing a recipe")
        recipe = self._store.get(recipe_id)
        self._state = ViewState(
            mode=ViewMode.FORM,
            title=recipe.title,
            ingredients=recipe.ingredients,
            preparation_method=recipe.preparation_method,
            editing_id=recipe.id,
        )

    def edit_fields(
        self,
        *,
        title: Optional[str] = None,
        ingredients: Optional[str] = None,
        preparation_method: Optional[str] = None,
    ) -> None:
        self._require(ViewMode.FORM, "edit form fields")
        if title is not None:
            self._state.title = title
        if ingredients is not None:
            self._state.ingredients = ingredients
        if preparation_method is not None:
            self._state.preparation_method = preparation_method

    def cancel(self) -> None:
        self._require(ViewMode.FORM, "cancel the form")
        self._state = ViewState()

    def submit(self) -> Optional[Recipe]:
        """Save the working copy and go back to the list, whatever the outcome."""

        self._require(ViewMode.FORM, "submit the form")
        state = self._state
        if state.editing_id is not None:
            result = self._store.update(
                state.editing_id, state.title, state.ingredients, state.preparation_method
            )
        else:
            result = self._store.create(state.title, state.ingredients, state.preparation_method)

        if result is None:
            logger.info("Form submitted without changes to the collection.")
        self._state = ViewState()
        return result

    async def request_delete(self, recipe_id: str, confirm: Optional[Confirm] = None) -> bool:
        """Ask for confirmation and delete the recipe if the user accepts."""

        self._require(ViewMode.LIST, "delete a recipe")
        recipe = self._store.get(recipe_id)

        ask = confirm or self._confirm
        if not await ask(recipe):
            logger.info("Deletion of recipe %s declined.", recipe_id)
            return False
        return self._store.delete(recipe_id)

    def _require(self, mode: ViewMode, action: str) -> None:
        if self._state.mode is not mode:
            raise InvalidTransition(
                f"Cannot {action} while in {self._state.mode.value} mode."
            )


__all__ = ["Confirm", "InvalidTransition", "ViewController", "confirmation_message"]
