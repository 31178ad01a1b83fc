import atexit
import dataclasses
import logging
from typing import Optional

from flask import Flask, flash, redirect, render_template, request, url_for

from .config import PLATFORM_WEB, Settings
from .controller import InvalidTransition, ViewController, confirmation_message
from .file_storage import FileStorageAdapter
from .models import Recipe, ViewMode
from .runtime import EventLoopThread
from .storage import StorageAdapter
from .store import RecipeStore

try:
    from .gcp_storage import FirestoreStorageAdapter
except ImportError:  # pragma: no cover - allows running tests without optional deps
    FirestoreStorageAdapter = None  # type: ignore[assignment,misc]

logger = logging.getLogger(__name__)


def create_app(
    storage: Optional[StorageAdapter] = None,
    settings: Optional[Settings] = None,
) -> Flask:
    """Create and configure the Flask application.

    Parameters
    ----------
    storage:
        Optional storage adapter. When ``None`` the adapter is chosen from
        ``settings.platform``: local files on a device, Firestore on the web.
    settings:
        Optional settings. Defaults to :meth:`Settings.from_env`.
    """

    settings = settings or Settings.from_env()

    app = Flask(__name__)
    app.config.setdefault("MAX_CONTENT_LENGTH", 1024 * 1024)
    app.secret_key = settings.secret_key

    if storage is None:
        storage = select_storage(settings)

    runtime = EventLoopThread()
    store = RecipeStore(storage)
    runtime.run(store.load())
    controller = ViewController(store)

    def _close() -> None:
        _shutdown(runtime, store)

    atexit.register(_close)

    app.config["RECIPE_STORAGE"] = storage
    app.config["RECIPE_STORE"] = store
    app.config["VIEW_CONTROLLER"] = controller
    app.config["EVENT_LOOP"] = runtime
    app.config["RECIPE_SHUTDOWN"] = _close

    @app.get("/")
    def index() -> str:
        state, recipes = runtime.call(
            lambda: (dataclasses.replace(controller.state), store.recipes)
        )

        if state.mode is ViewMode.FORM:
            return render_template(
                "form.html",
                state=state,
                title="Edit recipe" if state.is_editing else "Add recipe",
            )

        return render_template("index.html", recipes=recipes, title="Recipe Book")

    @app.post("/recipes/new")
    def new_recipe() -> str:
        try:
            runtime.call(controller.start_add)
        except InvalidTransition:
            flash("Finish or cancel the open form first.", "error")
        return redirect(url_for("index"))

    @app.post("/recipes/<recipe_id>/edit")
    def edit_recipe(recipe_id: str) -> str:
        try:
            runtime.call(controller.start_edit, recipe_id)
        except KeyError:
            flash("Recipe not found.", "error")
        except InvalidTransition:
            flash("Finish or cancel the open form first.", "error")
        return redirect(url_for("index"))

    @app.post("/form")
    def submit_form() -> str:
        title = request.form.get("title", "")
        ingredients = request.form.get("ingredients", "")
        preparation_method = request.form.get("preparation_method", "")

        def _submit() -> tuple[bool, Optional[Recipe]]:
            controller.edit_fields(
                title=title, ingredients=ingredients, preparation_method=preparation_method
            )
            if not title.strip():
                return False, None
            editing = controller.state.is_editing
            return editing, controller.submit()

        try:
            editing, recipe = runtime.call(_submit)
        except InvalidTransition:
            flash("There is no open form to save.", "error")
            return redirect(url_for("index"))

        if not title.strip():
            flash("Please provide a recipe title.", "error")
        elif recipe is None:
            flash("Recipe not found.", "error")
        elif editing:
            flash(f"Recipe '{recipe.title}' updated.", "success")
        else:
            flash(f"Recipe '{recipe.title}' saved.", "success")
        return redirect(url_for("index"))

    @app.post("/form/cancel")
    def cancel_form() -> str:
        try:
            runtime.call(controller.cancel)
        except InvalidTransition:
            flash("There is no open form to cancel.", "error")
        return redirect(url_for("index"))

    @app.get("/recipes/<recipe_id>/delete")
    def confirm_delete(recipe_id: str) -> str:
        try:
            recipe = runtime.call(store.get, recipe_id)
        except KeyError:
            flash("Recipe not found.", "error")
            return redirect(url_for("index"))

        return render_template(
            "confirm_delete.html",
            recipe=recipe,
            message=confirmation_message(recipe),
            title="Delete recipe",
        )

    @app.post("/recipes/<recipe_id>/delete")
    def delete_recipe(recipe_id: str) -> str:
        accepted = request.form.get("confirm") == "yes"

        async def _answer(recipe: Recipe) -> bool:
            return accepted

        try:
            deleted = runtime.run(controller.request_delete(recipe_id, confirm=_answer))
        except KeyError:
            flash("Recipe not found.", "error")
        except InvalidTransition:
            flash("Finish or cancel the open form first.", "error")
        else:
            if deleted:
                flash("Recipe deleted.", "success")
            else:
                flash("Recipe kept.", "info")
        return redirect(url_for("index"))

    return app


def select_storage(settings: Settings) -> StorageAdapter:
    """Pick the storage backend for the configured platform."""

    if settings.platform == PLATFORM_WEB:
        if FirestoreStorageAdapter is None:
            raise RuntimeError(
                "google-cloud-firestore is not installed. Install it or run with "
                "RECIPEBOOK_PLATFORM=device."
            )
        logger.info("Using Firestore storage (collection %s).", settings.storage_collection)
        return FirestoreStorageAdapter.from_settings(settings)

    logger.info("Using device storage in %s.", settings.data_dir)
    return FileStorageAdapter(settings.data_dir)


def close_app(app: Flask) -> None:
    """Flush pending recipe writes and stop the app's event loop now."""

    close = app.config["RECIPE_SHUTDOWN"]
    atexit.unregister(close)
    close()


def _shutdown(runtime: EventLoopThread, store: RecipeStore) -> None:
    if runtime.loop.is_closed():
        return
    try:
        runtime.run(store.flush(), timeout=10)
    finally:
        runtime.stop()


__all__ = ["close_app", "create_app", "select_storage", "Recipe"]
