"""
API tests through the Flask test client.

Providers are the scripted fakes from conftest; storage is in memory and
uploads go to a temporary folder.
"""

import io
from unittest.mock import MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from app import create_app
from src.yorkiebook.services import build_services
from src.yorkiebook.utils.errors import ProviderTransientError
from tests.conftest import PNG_BYTES, STORY_RESPONSE, analyzed_image, make_zip
from tests.test_constants import (
    FILE_NOT_FOUND,
    HTTP_BAD_REQUEST,
    HTTP_NOT_FOUND,
    HTTP_OK,
    HTTP_SERVICE_UNAVAILABLE,
    HTTP_TOO_MANY_REQUESTS,
    NOT_FOUND,
    PROVIDER_TRANSIENT,
    SERVICE_UNAVAILABLE,
    VALIDATION_FAILED,
)


@pytest.fixture
def scenario_config():
    return {
        "protagonist": {"personality": "brave and loyal", "appearance": "black and tan"},
        "antagonist": {"type": "squirrel-gang", "personality": "mischievous"},
        "theme": "friendship",
        "mood": "lighthearted",
        "artStyle": {"style": "whimsical", "description": "playful"},
    }


def upload(client, data: bytes, filename: str, book_id=None):
    form = {"file": (io.BytesIO(data), filename)}
    if book_id is not None:
        form["bookId"] = str(book_id)
    return client.post("/api/upload", data=form, content_type="multipart/form-data")


class TestHealthAndOptions:

    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == HTTP_OK
        assert response.get_json() == {"status": "ok"}

    def test_wizard_options(self, client):
        data = client.get("/api/wizard/options").get_json()
        assert set(data) == {"colors", "personalities", "themes", "antagonists", "farmElements", "artStyles"}
        assert len(data["colors"]) == 20
        assert {a["value"] for a in data["antagonists"]} == {
            "sorcerer-basic", "sorcerer-squirrels", "squirrel-gang", "dark-wizard",
        }


class TestStoryGeneration:
    """The four end-to-end story scenarios plus listing."""

    def test_generate_story_success(self, client, scenario_config):
        response = client.post("/api/stories/generate", json=scenario_config)

        assert response.status_code == HTTP_OK
        story = response.get_json()
        assert isinstance(story["id"], int) and story["id"] > 0
        assert story["title"] == STORY_RESPONSE["title"]
        assert story["content"] == STORY_RESPONSE["content"]
        assert story["metadata"]["wordCount"] == STORY_RESPONSE["metadata"]["wordCount"]
        assert story["theme"] == "friendship"
        assert story["artStyle"] == {"style": "whimsical", "description": "playful"}
        assert story["setting"] == "Uncle Mark's Farm"
        assert story["selectedImages"] == {"slot1": 1, "slot2": 2, "slot3": 3}

    def test_missing_theme_is_rejected(self, client, services, text_provider, scenario_config):
        del scenario_config["theme"]
        response = client.post("/api/stories/generate", json=scenario_config)

        body = response.get_json()
        assert response.status_code == HTTP_BAD_REQUEST
        assert body["error"] == VALIDATION_FAILED
        assert body["retry"] is False
        assert any(d["path"] == "theme" for d in body["details"])
        assert services.stories.count() == 0
        assert text_provider.calls == []

    def test_rate_limited_provider_after_three_attempts(
        self, client, services, text_provider, sleep_calls, scenario_config
    ):
        text_provider.queue(*[ProviderTransientError(status_code=429) for _ in range(5)])
        response = client.post("/api/stories/generate", json=scenario_config)

        body = response.get_json()
        assert response.status_code == HTTP_TOO_MANY_REQUESTS
        assert body["error"] == PROVIDER_TRANSIENT
        assert body["retry"] is True
        assert body["retry_after"] == 60
        assert len(text_provider.calls) == 3
        assert sleep_calls == [1.0, 2.0]
        assert services.stories.count() == 0

    def test_unknown_story(self, client):
        response = client.get("/api/stories/999")
        assert response.status_code == HTTP_NOT_FOUND
        assert response.get_json()["error"] == NOT_FOUND

    def test_get_and_list(self, client, scenario_config):
        created = client.post("/api/stories/generate", json=scenario_config).get_json()

        assert client.get(f"/api/stories/{created['id']}").get_json() == created
        listed = client.get("/api/stories").get_json()
        assert [s["id"] for s in listed["stories"]] == [created["id"]]

    def test_non_object_body(self, client):
        response = client.post("/api/stories/generate", json=["not", "an", "object"])
        assert response.status_code == HTTP_BAD_REQUEST
        assert response.get_json()["error"] == VALIDATION_FAILED

    def test_unknown_antagonist_rejected(self, client, scenario_config):
        scenario_config["antagonist"]["type"] = "dragon"
        assert client.post("/api/stories/generate", json=scenario_config).status_code == HTTP_BAD_REQUEST


class TestWizardFlow:
    """The wizard draft lives in the session cookie kept by the test client."""

    def fill_steps(self, client):
        client.put("/api/wizard/steps/appearance", json={"value": ["Classic Black & Tan"]})
        client.put("/api/wizard/steps/personality", json={"value": "Loyal and Protective"})
        client.put("/api/wizard/steps/story", json={"value": {
            "theme": "courage", "antagonist": "squirrel", "elements": ["garden"],
        }})
        client.put("/api/wizard/steps/art-style", json={"value": ["storybook"]})

    def test_draft_persists_between_requests(self, client):
        client.put("/api/wizard/steps/personality", json={"value": "Sweet and Gentle"})
        draft = client.get("/api/wizard/draft").get_json()
        assert draft["personality"] == "Sweet and Gentle"
        assert draft["appearance"] == []

    def test_advance_reports_blocking_fields(self, client):
        response = client.post("/api/wizard/steps/appearance/advance")
        assert response.status_code == HTTP_BAD_REQUEST
        assert response.get_json()["details"][0]["path"] == "appearance"

    def test_advance_returns_next_step(self, client):
        self.fill_steps(client)
        assert client.post("/api/wizard/steps/story/advance").get_json() == {"next": "art-style"}
        assert client.post("/api/wizard/steps/review/advance").get_json() == {"next": None}

    def test_save_requires_value(self, client):
        response = client.put("/api/wizard/steps/personality", json={})
        assert response.status_code == HTTP_BAD_REQUEST

    def test_finalize_normalizes(self, client):
        self.fill_steps(client)
        config = client.post("/api/wizard/finalize").get_json()

        assert config["antagonist"]["type"] == "squirrel-gang"
        assert config["mood"] == "Lighthearted"
        assert config["artStyle"]["description"] == "Traditional children's book illustrations"
        assert "classic black & tan" in config["protagonist"]["appearance"]

    def test_submit_incomplete_draft(self, client, text_provider):
        response = client.post("/api/wizard/submit")
        assert response.status_code == HTTP_BAD_REQUEST
        assert text_provider.calls == []

    def test_submit_generates_and_clears(self, client, services):
        self.fill_steps(client)
        response = client.post("/api/wizard/submit")

        assert response.status_code == HTTP_OK
        assert response.get_json()["theme"] == "courage"
        assert services.stories.count() == 1
        assert client.get("/api/wizard/draft").get_json()["personality"] == ""

    def test_failed_submit_keeps_draft(self, client, text_provider):
        self.fill_steps(client)
        text_provider.queue(*[ProviderTransientError() for _ in range(3)])

        assert client.post("/api/wizard/submit").status_code == HTTP_SERVICE_UNAVAILABLE
        assert client.get("/api/wizard/draft").get_json()["personality"] == "Loyal and Protective"

    def test_clear_draft(self, client):
        self.fill_steps(client)
        client.delete("/api/wizard/draft")
        assert client.get("/api/wizard/draft").get_json()["art-style"] == []


class TestUploadAndAnalyze:

    def test_upload_single_image(self, client):
        response = upload(client, PNG_BYTES, "pixie.png", book_id=3)

        body = response.get_json()
        assert response.status_code == HTTP_OK
        assert body["message"] == "Upload successful"
        assert body["images"] == [{"id": 1, "path": "book-3/pixie.png", "order": 0}]

    def test_upload_archive(self, client):
        archive = make_zip({"a.png": PNG_BYTES, "__MACOSX/._a.png": b"x", "b.webp": PNG_BYTES})
        body = upload(client, archive, "pups.zip").get_json()
        assert [img["path"] for img in body["images"]] == ["book-1/a.png", "book-1/b.webp"]

    def test_upload_without_file(self, client):
        response = client.post("/api/upload", data={}, content_type="multipart/form-data")
        assert response.status_code == HTTP_BAD_REQUEST
        assert response.get_json()["error"] == VALIDATION_FAILED

    def test_upload_invalid_book_id(self, client):
        response = upload(client, PNG_BYTES, "pixie.png", book_id="zero")
        assert response.status_code == HTTP_BAD_REQUEST

    def test_uploaded_file_is_served(self, client):
        path = upload(client, PNG_BYTES, "pixie.png").get_json()["images"][0]["path"]
        response = client.get(f"/uploads/{path}")
        assert response.status_code == HTTP_OK
        assert response.data == PNG_BYTES

    def test_analyze_then_cache(self, client, text_provider):
        image_id = upload(client, PNG_BYTES, "pixie.png").get_json()["images"][0]["id"]

        first = client.post(f"/api/images/{image_id}/analyze")
        second = client.post(f"/api/images/{image_id}/analyze")

        assert first.status_code == HTTP_OK
        assert first.get_json() == second.get_json()
        assert first.get_json()["name"] == "Pixie"
        assert first.get_json()["path"] == "book-1/pixie.png"
        assert len(text_provider.calls) == 1

    def test_analyze_unknown_image(self, client):
        response = client.post("/api/images/77/analyze")
        assert response.status_code == HTTP_NOT_FOUND
        assert response.get_json()["error"] == NOT_FOUND

    def test_analyze_missing_file(self, client, services):
        image_id = upload(client, PNG_BYTES, "pixie.png").get_json()["images"][0]["id"]
        services.file_store.resolve("book-1/pixie.png").unlink()

        response = client.post(f"/api/images/{image_id}/analyze")
        assert response.status_code == HTTP_NOT_FOUND
        assert response.get_json()["error"] == FILE_NOT_FOUND


class TestImageListing:

    def test_filters(self, client, services):
        services.images.create(analyzed_image("book-1/a.png", "Pixie"))
        upload(client, PNG_BYTES, "plain.png")

        assert len(client.get("/api/images").get_json()) == 2
        analyzed = client.get("/api/images?analyzed=true").get_json()
        assert [img["path"] for img in analyzed] == ["book-1/a.png"]
        assert len(client.get("/api/images?analyzed=false").get_json()) == 1

    def test_invalid_filter(self, client):
        assert client.get("/api/images?analyzed=maybe").status_code == HTTP_BAD_REQUEST

    def test_random_returns_at_most_three_analyzed(self, client, services):
        for i in range(5):
            services.images.create(analyzed_image(f"book-1/{i}.png", f"Pup {i}"))
        upload(client, PNG_BYTES, "plain.png")

        images = client.get("/api/images/random").get_json()["images"]
        assert len(images) == 3
        assert all(img["analyzed"] for img in images)
        assert len({img["id"] for img in images}) == 3

    def test_random_with_no_images(self, client):
        assert client.get("/api/images/random").get_json() == {"images": []}

    def test_get_unknown_image(self, client):
        assert client.get("/api/images/5").status_code == HTTP_NOT_FOUND


class TestImageGeneration:

    def test_direct_generation(self, client, services):
        response = client.post("/api/images/generate-dalle", json={"prompt": "A Yorkie", "colors": ["Ruby Red"]})

        body = response.get_json()
        assert response.status_code == HTTP_OK
        assert body["path"].startswith("book-1/")
        assert services.file_store.exists(body["path"])

    def test_direct_generation_requires_prompt(self, client):
        assert client.post("/api/images/generate-dalle", json={}).status_code == HTTP_BAD_REQUEST

    def test_inline_illustration_completes(self, client):
        response = client.post("/api/images/generate", json={"description": "Pixie in the garden"})

        body = response.get_json()
        assert response.status_code == HTTP_OK
        assert body["status"] == "completed"
        image = client.get(f"/api/images/{body['imageId']}").get_json()
        assert image["midjourney"]["status"] == "completed"
        assert image["midjourney"]["imageUrl"] == f"/uploads/{image['path']}"

    def test_inline_illustration_failure(self, client, image_provider):
        image_provider.queue(*[ProviderTransientError() for _ in range(3)])
        body = client.post("/api/images/generate", json={"description": "Pixie"}).get_json()

        assert body["status"] == "failed"
        image = client.get(f"/api/images/{body['imageId']}").get_json()
        assert image["midjourney"]["status"] == "failed"

    def test_illustration_requires_subject(self, client):
        response = client.post("/api/images/generate", json={"setting": "barn"})
        assert response.status_code == HTTP_BAD_REQUEST


@pytest.fixture
def queued_app(test_config, text_provider, image_provider):
    """App with background jobs enabled and a mock RQ queue."""
    queue = MagicMock()
    queue.enqueue.return_value = MagicMock(id="job-1")
    config = dict(test_config, USE_BACKGROUND_JOBS=True)
    services = build_services(
        config,
        text_provider=text_provider,
        image_provider=image_provider,
        sleep=lambda _: None,
        queue_factory=lambda name: queue,
    )
    return create_app(config=config, services=services), queue


class TestQueuedIllustrations:

    def test_enqueues_and_reports_pending(self, queued_app, image_provider):
        app, queue = queued_app
        body = app.test_client().post("/api/images/generate", json={"description": "Pixie"}).get_json()

        assert body["status"] == "pending"
        args, kwargs = queue.enqueue.call_args
        assert args == ("src.yorkiebook.jobs.complete_illustration_job", body["imageId"])
        assert kwargs["job_timeout"] == "10m"
        assert image_provider.calls == []

    def test_queue_unavailable(self, queued_app):
        app, queue = queued_app
        queue.enqueue.side_effect = RedisConnectionError("refused")
        client = app.test_client()

        response = client.post("/api/images/generate", json={"description": "Pixie"})

        assert response.status_code == HTTP_SERVICE_UNAVAILABLE
        assert response.get_json()["error"] == SERVICE_UNAVAILABLE
        image = client.get("/api/images/1").get_json()
        assert image["midjourney"]["status"] == "failed"


class TestArtStyles:

    def test_create_get_update(self, client):
        created = client.post("/api/art-styles", json={
            "name": "Crayon", "description": "Waxy strokes", "examplePrompt": "A crayon Yorkie",
        }).get_json()
        assert created["id"] == 1
        assert created["examplePrompt"] == "A crayon Yorkie"

        updated = client.patch(f"/api/art-styles/{created['id']}", json={"description": "Bold strokes"}).get_json()
        assert updated["name"] == "Crayon"
        assert updated["description"] == "Bold strokes"
        assert client.get("/api/art-styles").get_json() == [updated]

    def test_create_requires_fields(self, client):
        response = client.post("/api/art-styles", json={"name": "Crayon"})
        assert response.status_code == HTTP_BAD_REQUEST
        assert response.get_json()["details"][0]["path"] == "description"

    def test_unknown_style(self, client):
        assert client.get("/api/art-styles/9").status_code == HTTP_NOT_FOUND
        assert client.patch("/api/art-styles/9", json={"name": "x"}).status_code == HTTP_NOT_FOUND


class TestDebugLogs:

    def test_logs_grouped_by_service(self, client, scenario_config):
        client.post("/api/stories/generate", json=scenario_config)
        client.post("/api/images/generate", json={"description": "Pixie"})

        logs = client.get("/api/debug/logs").get_json()
        assert set(logs) == {"openai", "midjourney"}
        assert [e["type"] for e in logs["openai"]] == ["request", "response"]
        assert logs["midjourney"][0]["type"] == "request"
        assert logs["midjourney"][-1]["type"] == "response"
