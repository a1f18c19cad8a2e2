import pytest

from genbatch.domain.models.errors import ConfigurationError
from genbatch.domain.models.job import (
    DEFAULT_VISION_PROMPT, BatchTally, Job, JobOutcome, JobStatus, RunSettings, parse_image_size,
)


def attachments(*urls):
    return [{"id": f"att{i}", "url": url} for i, url in enumerate(urls)]


@pytest.fixture
def config_fields():
    return {
        "FAL_API_KEY": "fal-key",
        "Face_Reference": attachments("https://ref/f1.png", "https://ref/f2.png", "https://ref/f3.png"),
        "Body_Reference": attachments("https://ref/b1.png"),
    }


def test_defaults_from_minimal_record(config_fields):
    settings = RunSettings.from_record(config_fields)

    assert settings.generation_api_key == "fal-key"
    assert settings.image_count == 6
    assert settings.image_size == "2048x2048"
    assert settings.video_duration == 5
    assert settings.enable_video is False
    assert settings.allow_unsafe is False
    assert settings.vision_enabled is False
    assert settings.vision_prompt_template == DEFAULT_VISION_PROMPT


def test_reference_urls_capped_per_set(config_fields):
    settings = RunSettings.from_record(config_fields)
    assert settings.reference_urls == ["https://ref/f1.png", "https://ref/f2.png", "https://ref/b1.png"]


def test_optional_fields_parsed(config_fields):
    config_fields.update({
        "Gemini_API_Key": "g-key",
        "Gemini_Prompt_Template": "Describe the pose",
        "Enable_NSFW": True,
        "Image_Size": "1024x1536",
        "num_images": 2,
        "Enable_Video": True,
        "Video_Duration": 10,
    })
    settings = RunSettings.from_record(config_fields)

    assert settings.vision_enabled is True
    assert settings.vision_prompt_template == "Describe the pose"
    assert settings.allow_unsafe is True
    assert settings.image_size == "1024x1536"
    assert settings.image_count == 2
    assert settings.enable_video is True
    assert settings.video_duration == 10


@pytest.mark.parametrize("count", [0, 7, "three", True])
def test_invalid_image_count_falls_back(config_fields, count, caplog):
    config_fields["num_images"] = count
    assert RunSettings.from_record(config_fields).image_count == 6
    assert "Invalid num_images" in caplog.text


def test_invalid_video_duration_falls_back(config_fields):
    config_fields["Video_Duration"] = 7
    assert RunSettings.from_record(config_fields).video_duration == 5


def test_missing_generation_key_is_fatal(config_fields):
    del config_fields["FAL_API_KEY"]
    with pytest.raises(ConfigurationError, match="FAL_API_KEY"):
        RunSettings.from_record(config_fields)


def test_missing_references_is_fatal():
    with pytest.raises(ConfigurationError, match="Reference"):
        RunSettings.from_record({"FAL_API_KEY": "fal-key"})


def test_bad_image_size_is_fatal(config_fields):
    config_fields["Image_Size"] = "huge"
    with pytest.raises(ConfigurationError):
        RunSettings.from_record(config_fields)


def test_parse_image_size():
    assert parse_image_size("2048x1024") == (2048, 1024)
    with pytest.raises(ConfigurationError):
        parse_image_size("0x100")


def test_video_prompt_falls_back_to_prompt():
    job = Job("rec1", "a cat")
    assert job.effective_video_prompt == "a cat"
    job.video_prompt = "the cat walks"
    assert job.effective_video_prompt == "the cat walks"


def test_outcome_flags():
    assert JobOutcome("a", JobStatus.SKIPPED).success
    assert not JobOutcome("a", JobStatus.TRANSIENT_FAILURE).is_terminal
    assert not JobOutcome("a", JobStatus.DEFERRED).is_terminal
    assert JobOutcome("a", JobStatus.FAILED).is_terminal


def test_tally_counts_deferred_separately():
    tally = BatchTally()
    tally.add([
        JobOutcome("a", JobStatus.SUCCEEDED),
        JobOutcome("b", JobStatus.SKIPPED),
        JobOutcome("c", JobStatus.FAILED),
        JobOutcome("d", JobStatus.TRANSIENT_FAILURE),
        JobOutcome("e", JobStatus.DEFERRED),
    ])

    assert (tally.processed, tally.succeeded, tally.failed, tally.deferred, tally.pages) == (5, 2, 2, 1, 1)
