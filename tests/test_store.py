from __future__ import annotations

from pathlib import Path
import json
import logging
import sys

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from fakes import InMemoryStorage
from recipebook.models import Recipe
from recipebook.storage import RECIPES_KEY
from recipebook.store import RecipeStore


def stored(*recipes: dict) -> InMemoryStorage:
    return InMemoryStorage({RECIPES_KEY: json.dumps(list(recipes))})


BOLO = {"id": "1", "title": "Bolo", "ingredients": "Farinha, Ovos", "preparationMethod": "Misture e asse"}
PUDIM = {"id": "2", "title": "Pudim", "ingredients": "Leite, Ovos", "preparationMethod": "Banho-maria"}


async def loaded_store(storage: InMemoryStorage) -> RecipeStore:
    store = RecipeStore(storage)
    await store.load()
    return store


@pytest.mark.asyncio
async def test_load_without_stored_key_starts_empty():
    store = await loaded_store(InMemoryStorage())

    assert store.recipes == ()
    assert store.loaded


@pytest.mark.asyncio
async def test_load_replaces_collection_in_stored_order():
    store = await loaded_store(stored(BOLO, PUDIM))

    assert [recipe.id for recipe in store.recipes] == ["1", "2"]
    assert store.get("2") == Recipe(
        id="2", title="Pudim", ingredients="Leite, Ovos", preparation_method="Banho-maria"
    )


@pytest.mark.asyncio
async def test_load_ignores_unknown_fields_and_defaults_missing_text():
    store = await loaded_store(stored({"id": "9", "title": "Sopa", "servings": 4}))

    recipe = store.get("9")
    assert recipe.ingredients == ""
    assert recipe.preparation_method == ""


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    ["not json", '{"id": "1"}', '[{"title": "No id"}]', '[1, 2]', json.dumps([BOLO, BOLO])],
)
async def test_load_treats_corrupt_data_as_empty(payload, caplog):
    storage = InMemoryStorage({RECIPES_KEY: payload})

    with caplog.at_level(logging.ERROR, logger="recipebook.store"):
        store = await loaded_store(storage)

    assert store.recipes == ()
    assert "could not be decoded" in caplog.text


@pytest.mark.asyncio
async def test_load_survives_unreachable_storage(caplog):
    storage = stored(BOLO)
    storage.fail_reads = True

    with caplog.at_level(logging.ERROR, logger="recipebook.store"):
        store = await loaded_store(storage)

    assert store.recipes == ()
    assert "Failed to load recipes" in caplog.text


@pytest.mark.asyncio
async def test_load_only_runs_once():
    store = await loaded_store(InMemoryStorage())

    with pytest.raises(RuntimeError):
        await store.load()


@pytest.mark.asyncio
async def test_mutations_require_load():
    store = RecipeStore(InMemoryStorage())

    with pytest.raises(RuntimeError):
        store.create("Bolo", "", "")


@pytest.mark.asyncio
async def test_create_appends_trimmed_recipe_and_persists():
    storage = InMemoryStorage()
    store = await loaded_store(storage)

    recipe = store.create("Bolo", "Farinha, Ovos", "Misture e asse")
    await store.flush()

    assert len(store) == 1
    assert recipe is not None
    assert recipe.id
    assert recipe.title == "Bolo"
    assert json.loads(storage.data[RECIPES_KEY]) == [
        {
            "id": recipe.id,
            "title": "Bolo",
            "ingredients": "Farinha, Ovos",
            "preparationMethod": "Misture e asse",
        }
    ]


@pytest.mark.asyncio
async def test_create_trims_all_fields_and_keeps_order():
    store = await loaded_store(stored(BOLO))

    recipe = store.create("  Pão  ", "\nFarinha\n", "  Sove  ")

    assert [r.id for r in store.recipes] == ["1", recipe.id]
    assert (recipe.title, recipe.ingredients, recipe.preparation_method) == (
        "Pão",
        "Farinha",
        "Sove",
    )


@pytest.mark.asyncio
@pytest.mark.parametrize("title", ["", "   ", "\t\n"])
async def test_create_with_blank_title_is_ignored(title):
    storage = InMemoryStorage()
    store = await loaded_store(storage)

    assert store.create(title, "Farinha", "Asse") is None
    await store.flush()

    assert store.recipes == ()
    assert storage.writes == []


@pytest.mark.asyncio
async def test_create_generates_distinct_ids():
    ids = iter(["a", "a", "b"])
    store = RecipeStore(InMemoryStorage(), id_factory=lambda: next(ids))
    await store.load()

    first = store.create("Um", "", "")
    second = store.create("Dois", "", "")

    assert (first.id, second.id) == ("a", "b")


@pytest.mark.asyncio
async def test_update_replaces_content_in_place():
    storage = stored(BOLO, PUDIM)
    store = await loaded_store(storage)

    updated = store.update("1", "Bolo de Chocolate", "Farinha, Cacau", "Asse 40min")
    await store.flush()

    assert updated == Recipe(
        id="1",
        title="Bolo de Chocolate",
        ingredients="Farinha, Cacau",
        preparation_method="Asse 40min",
    )
    assert [recipe.id for recipe in store.recipes] == ["1", "2"]
    assert store.get("2").title == "Pudim"
    assert json.loads(storage.data[RECIPES_KEY])[0]["title"] == "Bolo de Chocolate"


@pytest.mark.asyncio
async def test_update_stores_fields_as_typed():
    storage = stored(BOLO)
    store = await loaded_store(storage)

    updated = store.update("1", "  Bolo de Chocolate ", " Farinha ", " Asse ")
    await store.flush()

    assert (updated.title, updated.ingredients, updated.preparation_method) == (
        "  Bolo de Chocolate ",
        " Farinha ",
        " Asse ",
    )
    assert json.loads(storage.data[RECIPES_KEY])[0]["title"] == "  Bolo de Chocolate "


@pytest.mark.asyncio
async def test_update_unknown_id_changes_nothing():
    storage = stored(BOLO)
    store = await loaded_store(storage)

    assert store.update("missing", "Outro", "", "") is None
    await store.flush()

    assert store.get("1").title == "Bolo"
    assert storage.writes == []


@pytest.mark.asyncio
async def test_update_with_blank_title_changes_nothing():
    store = await loaded_store(stored(BOLO))

    assert store.update("1", "  ", "Nada", "Nada") is None
    assert store.get("1").ingredients == "Farinha, Ovos"


@pytest.mark.asyncio
async def test_delete_removes_matching_recipe():
    storage = stored(BOLO)
    store = await loaded_store(storage)

    assert store.delete("1") is True
    await store.flush()

    assert store.recipes == ()
    assert storage.data[RECIPES_KEY] == "[]"


@pytest.mark.asyncio
async def test_delete_unknown_id_is_a_no_op():
    storage = stored(BOLO, PUDIM)
    store = await loaded_store(storage)

    assert store.delete("3") is False
    await store.flush()

    assert len(store) == 2
    assert storage.writes == []


@pytest.mark.asyncio
async def test_writes_are_applied_in_mutation_order():
    storage = InMemoryStorage()
    store = await loaded_store(storage)

    first = store.create("Bolo", "", "")
    store.create("Pudim", "", "")
    store.delete(first.id)
    await store.flush()

    titles = [[r["title"] for r in json.loads(value)] for _, value in storage.writes]
    assert titles == [["Bolo"], ["Bolo", "Pudim"], ["Pudim"]]


@pytest.mark.asyncio
async def test_failed_write_keeps_memory_state(caplog):
    storage = InMemoryStorage()
    storage.fail_writes = True
    store = await loaded_store(storage)

    with caplog.at_level(logging.ERROR, logger="recipebook.store"):
        recipe = store.create("Bolo", "", "")
        await store.flush()

    assert store.recipes == (recipe,)
    assert RECIPES_KEY not in storage.data
    assert "Failed to save recipes" in caplog.text


@pytest.mark.asyncio
async def test_persisted_collection_loads_back_equal():
    storage = InMemoryStorage()
    store = await loaded_store(storage)
    store.create("Bolo", "Farinha, Ovos", "Misture e asse")
    store.create("Pudim", "Leite", "Banho-maria")
    store.create("Café", "", "")
    await store.flush()

    reloaded = await loaded_store(InMemoryStorage(dict(storage.data)))

    assert reloaded.recipes == store.recipes
