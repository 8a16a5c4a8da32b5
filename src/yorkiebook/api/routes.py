"""
Flask route handlers for the Yorkie Storybook API.

Routes parse the request, call one service and render the result. Errors
are raised as ``APIError`` subclasses (or ``Err.unwrap()``) and rendered
by the handlers registered in ``utils.errors``.
"""

import logging
import random
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from flask import Flask
    from flask_limiter import Limiter

import pydantic
from flask import current_app, jsonify, request, send_from_directory

from src.yorkiebook.api.helpers import (
    build_profile_response,
    get_bool_arg,
    get_book_id,
    get_json_body,
    get_services,
    get_wizard,
)
from src.yorkiebook.catalog import get_wizard_options
from src.yorkiebook.models import CustomArtStyle, CustomArtStyleUpdate
from src.yorkiebook.utils.errors import (
    NotFoundError,
    ValidationError,
    validation_error_from_pydantic,
)

logger = logging.getLogger(__name__)

RANDOM_IMAGE_COUNT = 3


def register_routes(flask_app: 'Flask', limiter_instance: 'Limiter') -> None:
    """
    Register all application routes.

    Args:
        flask_app: Flask application instance
        limiter_instance: Limiter instance for rate limiting
    """

    @flask_app.route('/api/health')
    def health():
        """Health check endpoint."""
        return jsonify({"status": "ok"})

    # Wizard

    @flask_app.route('/api/wizard/options', methods=['GET'])
    def wizard_options():
        """Option catalogs for every wizard step."""
        return jsonify(get_wizard_options())

    @flask_app.route('/api/wizard/draft', methods=['GET'])
    def get_draft():
        """Current browser's draft, with empty defaults for unsaved steps."""
        return jsonify(get_wizard().load_draft())

    @flask_app.route('/api/wizard/draft', methods=['DELETE'])
    def clear_draft():
        """Abandon the current draft."""
        get_wizard().clear()
        return jsonify({"message": "Draft cleared"})

    @flask_app.route('/api/wizard/steps/<step>', methods=['PUT'])
    def save_step(step: str):
        """
        Save the value for one wizard step.

        Request Body (JSON):
            - value: The step's value (list of colors, personality string,
              {theme, antagonist, elements} or list of art styles)

        Returns:
            JSON response with the whole draft
        """
        data = get_json_body()
        if "value" not in data:
            raise ValidationError(
                "Request body must include 'value'.",
                details=[{"path": "value", "message": "Field required"}],
            )
        return jsonify(get_wizard().save_step_value(step, data["value"]))

    @flask_app.route('/api/wizard/steps/<step>/advance', methods=['POST'])
    def advance_step(step: str):
        """Validate a step; returns ``{"next": <step id or null>}``."""
        return jsonify({"next": get_wizard().advance(step)})

    @flask_app.route('/api/wizard/finalize', methods=['POST'])
    def finalize_draft():
        """Assemble the draft into a normalized story configuration."""
        params = get_wizard().finalize()
        return jsonify(params.to_dict())

    @flask_app.route('/api/wizard/submit', methods=['POST'])
    @limiter_instance.limit(lambda: current_app.config["GENERATE_RATE_LIMIT"])
    def submit_draft():
        """
        Finalize the draft and generate a story from it.

        The draft is cleared only after the story has been stored.

        Raises:
            ValidationError: If the draft is incomplete (no provider call is made)
            ProviderTransientError / ProviderFatalError: If generation fails
        """
        wizard = get_wizard()
        params = wizard.finalize()
        story = get_services().generation.generate_story(params).unwrap()
        wizard.clear()
        return jsonify(story.to_dict())

    # Stories

    @flask_app.route('/api/stories/generate', methods=['POST'])
    @limiter_instance.limit(lambda: current_app.config["GENERATE_RATE_LIMIT"])
    def generate_story():
        """
        Generate a new story from a story configuration.

        Request Body (JSON):
            - protagonist (dict, required): {name?, personality, appearance}
            - antagonist (dict, required): {type, personality}
            - theme (str, required)
            - artStyle (dict, required): {style, description}
            - mood (str, optional)
            - farmElements (list, optional)
            - selectedImage (int, optional)

        Returns:
            JSON response with the stored story

        Raises:
            ValidationError: If the configuration is malformed
            ProviderTransientError: If the provider is rate limited or unavailable
            ProviderFatalError: If the provider rejects the request
        """
        data = get_json_body()
        logger.info(f"Story generation requested (theme={data.get('theme')!r})")
        story = get_services().generation.generate_story(data).unwrap()
        return jsonify(story.to_dict())

    @flask_app.route('/api/stories', methods=['GET'])
    def list_stories():
        """All stories in creation order."""
        stories = get_services().stories.list_all()
        return jsonify({"stories": [story.to_dict() for story in stories]})

    @flask_app.route('/api/stories/<int:story_id>', methods=['GET'])
    def get_story(story_id: int):
        """
        Get a story by ID.

        Raises:
            NotFoundError: If story with given ID does not exist
        """
        story = get_services().stories.get_by_id(story_id)
        if story is None:
            raise NotFoundError("Story", story_id)
        return jsonify(story.to_dict())

    # Images

    @flask_app.route('/api/upload', methods=['POST'])
    @limiter_instance.limit(lambda: current_app.config["UPLOAD_RATE_LIMIT"])
    def upload_image():
        """
        Upload an image or a ZIP archive of images.

        Form fields:
            - file (required): Image file or ZIP archive
            - bookId (optional): Book to attach the images to (default 1)
        """
        upload = request.files.get('file')
        if upload is None or not upload.filename:
            raise ValidationError(
                "No file provided.",
                details=[{"path": "file", "message": "Field required"}],
            )
        book_id = get_book_id(request.form.get('bookId'))

        images = get_services().uploads.save_uploaded_file(upload.read(), upload.filename, book_id)
        logger.info(f"Processed upload {upload.filename!r}: {len(images)} image(s)")
        return jsonify({
            "message": "Upload successful",
            "images": [{"id": img.id, "path": img.path, "order": img.order} for img in images],
        })

    @flask_app.route('/api/images', methods=['GET'])
    def list_images():
        """Images in upload order, optionally filtered by ?analyzed= and ?selected=."""
        images = get_services().images.list_all(
            analyzed=get_bool_arg('analyzed'),
            selected=get_bool_arg('selected'),
        )
        return jsonify([image.to_dict() for image in images])

    @flask_app.route('/api/images/random', methods=['GET'])
    def random_images():
        """Up to three analyzed images in random order."""
        analyzed = get_services().images.list_all(analyzed=True)
        chosen = random.sample(analyzed, min(RANDOM_IMAGE_COUNT, len(analyzed)))
        return jsonify({"images": [image.to_dict() for image in chosen]})

    @flask_app.route('/api/images/<int:image_id>', methods=['GET'])
    def get_image(image_id: int):
        """Get an image record, including its illustration status."""
        image = get_services().images.get_by_id(image_id)
        if image is None:
            raise NotFoundError("Image", image_id)
        return jsonify(image.to_dict())

    @flask_app.route('/api/images/<int:image_id>/analyze', methods=['POST'])
    @limiter_instance.limit(lambda: current_app.config["ANALYZE_RATE_LIMIT"])
    def analyze_image(image_id: int):
        """
        Build a character profile for an image.

        Returns the stored profile without a provider call when the image
        was analyzed before.

        Raises:
            NotFoundError: If the image does not exist
            FileMissingError: If the image file is missing on disk
        """
        image = get_services().generation.analyze_image(image_id).unwrap()
        return jsonify(build_profile_response(image))

    @flask_app.route('/api/images/generate', methods=['POST'])
    @limiter_instance.limit(lambda: current_app.config["IMAGE_RATE_LIMIT"])
    def request_illustration():
        """
        Queue an illustration.

        Request Body (JSON):
            - description (str, optional): What to draw
            - characteristics (list or str, optional)
            - setting (str, optional)
            - artStyle (dict, optional): {style, description}
            - protagonist (dict, optional): {personality, appearance}; used
              when description is absent
            - bookId (int, optional)

        Returns:
            JSON response {message, imageId, status}; poll GET /api/images/<id>
            while the status is "pending"
        """
        data = get_json_body()
        services = get_services()
        image = services.generation.request_illustration(data).unwrap()
        status = services.jobs.dispatch_illustration(image.id)
        return jsonify({
            "message": "Image generation started",
            "imageId": image.id,
            "status": status,
        })

    @flask_app.route('/api/images/generate-dalle', methods=['POST'])
    @limiter_instance.limit(lambda: current_app.config["IMAGE_RATE_LIMIT"])
    def generate_image():
        """
        Generate an image synchronously.

        Request Body (JSON):
            - prompt (str, required)
            - artStyle (str, optional)
            - colors (list, optional)
            - bookId (int, optional)

        Returns:
            JSON response {id, path}
        """
        data = get_json_body()
        image = get_services().generation.generate_image(data).unwrap()
        return jsonify({"id": image.id, "path": image.path})

    # Custom art styles

    @flask_app.route('/api/art-styles', methods=['GET'])
    def list_art_styles():
        styles = get_services().art_styles.list_all()
        return jsonify([style.to_dict() for style in styles])

    @flask_app.route('/api/art-styles', methods=['POST'])
    def create_art_style():
        """Create a custom art style from {name, description, examplePrompt?}."""
        data = get_json_body()
        data.pop('id', None)
        data.pop('createdAt', None)
        try:
            style = CustomArtStyle.model_validate(data)
        except pydantic.ValidationError as e:
            raise validation_error_from_pydantic(e, "Invalid art style") from e
        created = get_services().art_styles.create(style)
        return jsonify(created.to_dict())

    @flask_app.route('/api/art-styles/<int:style_id>', methods=['GET'])
    def get_art_style(style_id: int):
        style = get_services().art_styles.get_by_id(style_id)
        if style is None:
            raise NotFoundError("ArtStyle", style_id)
        return jsonify(style.to_dict())

    @flask_app.route('/api/art-styles/<int:style_id>', methods=['PATCH'])
    def update_art_style(style_id: int):
        """Update some of name, description and examplePrompt."""
        data = get_json_body()
        try:
            updates = CustomArtStyleUpdate.model_validate(data).model_dump(exclude_unset=True)
        except pydantic.ValidationError as e:
            raise validation_error_from_pydantic(e, "Invalid art style") from e
        updated = get_services().art_styles.update(style_id, updates)
        return jsonify(updated.to_dict())

    # Diagnostics and files

    @flask_app.route('/api/debug/logs', methods=['GET'])
    def debug_logs():
        """Most recent provider requests, responses and errors per service."""
        return jsonify(get_services().debug_log.snapshot())

    @flask_app.route('/uploads/<path:filename>', methods=['GET'])
    def serve_upload(filename: str):
        """Serve stored image bytes."""
        return send_from_directory(get_services().file_store.root, filename)
