"""Command line runner for the subtitle timing pipeline."""

import asyncio
from pathlib import Path
from typing import Any

import orjson as json
import typer
import yaml
from loguru import logger

from subtitle_timing_pipeline.config import TimingConfig, load_config
from subtitle_timing_pipeline.constants import GOOGLE_SPEECH_API_KEY
from subtitle_timing_pipeline.core import TimingPipeline
from subtitle_timing_pipeline.exceptions import TimingPipelineError
from subtitle_timing_pipeline.models import FallbackTimings, TimingRequest, TimingResult
from subtitle_timing_pipeline.services import GoogleSpeechRecognizer, HttpAudioStore
from subtitle_timing_pipeline.utils.logging import setup_logging

app: typer.Typer = typer.Typer(
    help="Reconstruct word-level subtitle timings from recognizer output",
    no_args_is_help=True,
)


def _create_services(*, config: TimingConfig) -> tuple[HttpAudioStore, GoogleSpeechRecognizer]:
    services = config.services
    store = HttpAudioStore(
        timeout_seconds=services.download_timeout_seconds,
        max_attempts=services.download_retries,
    )
    recognizer = GoogleSpeechRecognizer(
        api_key=GOOGLE_SPEECH_API_KEY,
        endpoint=services.recognizer_endpoint,
        model=services.recognizer_model,
        timeout_seconds=services.recognition_timeout_seconds,
        locale_overrides=services.locale_overrides,
        default_locale=services.default_locale,
    )
    return store, recognizer


async def run_requests(
    *, config: TimingConfig, requests: list[TimingRequest]
) -> list[TimingResult]:
    """Run requests through a pipeline backed by the HTTP services.

    Args:
        config: Pipeline configuration.
        requests: Work items, processed as one batch.

    Returns:
        One result per request, in order.
    """
    store, recognizer = _create_services(config=config)
    try:
        pipeline = TimingPipeline(audio_store=store, recognizer=recognizer, config=config)
        if len(requests) == 1:
            request = requests[0]
            return [
                await pipeline.produce_timing_result(
                    request.text, request.language_code, request.audio_reference
                )
            ]
        return await pipeline.produce_timing_results_batch(requests)
    finally:
        await store.close()
        await recognizer.close()


def result_document(result: TimingResult, *, identifier: str | None = None) -> dict[str, Any]:
    """Serialize a timing result for JSON output."""
    document: dict[str, Any] = {
        "status": "fallback" if result.is_fallback else "aligned",
        "reason": str(result.reason) if isinstance(result, FallbackTimings) else None,
        "timings": [timing.to_dict() for timing in result.timings],
    }
    if identifier is not None:
        document["id"] = identifier
    return document


def _write_output(payload: Any, *, output: Path | None) -> None:
    data = json.dumps(payload, option=json.OPT_INDENT_2).decode("utf-8")
    if output is None:
        typer.echo(data)
    else:
        output.write_text(data + "\n", encoding="utf-8")
        typer.echo(f"Wrote {output}")


def _load_manifest(manifest: Path) -> list[TimingRequest]:
    try:
        raw = yaml.safe_load(manifest.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise TimingPipelineError(f"Cannot read manifest {manifest}: {e}") from e
    if not isinstance(raw, list):
        raise TimingPipelineError(f"Manifest must contain a list of items: {manifest}")
    return [TimingPipeline.coerce_request(item, index=i) for i, item in enumerate(raw)]


def _prepare(*, config_path: Path | None, json_logs: bool) -> TimingConfig:
    config = load_config(config_path=config_path)
    setup_logging(service="cli", level=config.log_level, json_logs=True if json_logs else None)
    return config


@app.command()
def align(
    text: str = typer.Option(None, "--text", help="Reference text", show_default=False),
    text_file: Path = typer.Option(
        None, "--text-file", help="File holding the reference text", show_default=False
    ),
    language: str = typer.Option("", "--language", help="Language code, e.g. en-GB or cmn-CN"),
    audio: str = typer.Option(..., "--audio", help="Audio URL or local path"),
    config_path: Path = typer.Option(
        None, "--config", help="Path to configuration YAML file", show_default=False
    ),
    output: Path = typer.Option(
        None, "--output", help="Write JSON here instead of stdout", show_default=False
    ),
    json_logs: bool = typer.Option(
        False, "--json-logs", help="Output logs in JSON format instead of human-readable format"
    ),
) -> None:
    """Produce timings for one reference text."""
    try:
        config = _prepare(config_path=config_path, json_logs=json_logs)
        if text_file is not None:
            try:
                text = text_file.read_text(encoding="utf-8")
            except OSError as e:
                raise TimingPipelineError(f"Cannot read text file {text_file}: {e}") from e
        if text is None:
            raise TimingPipelineError("Provide --text or --text-file")

        request = TimingRequest(text=text, language_code=language, audio_reference=audio)
        [result] = asyncio.run(run_requests(config=config, requests=[request]))
    except TimingPipelineError as e:
        typer.echo(f"Error: {e}", err=True)
        logger.error(f"Alignment run failed: {e}")
        raise typer.Exit(1) from e

    _write_output(result_document(result), output=output)


@app.command()
def batch(
    manifest: Path = typer.Argument(..., help="YAML or JSON list of timing requests"),
    config_path: Path = typer.Option(
        None, "--config", help="Path to configuration YAML file", show_default=False
    ),
    output: Path = typer.Option(
        None, "--output", help="Write JSON here instead of stdout", show_default=False
    ),
    json_logs: bool = typer.Option(
        False, "--json-logs", help="Output logs in JSON format instead of human-readable format"
    ),
) -> None:
    """Produce timings for every item of a manifest."""
    try:
        config = _prepare(config_path=config_path, json_logs=json_logs)
        requests = _load_manifest(manifest)
        results = asyncio.run(run_requests(config=config, requests=requests)) if requests else []
    except TimingPipelineError as e:
        typer.echo(f"Error: {e}", err=True)
        logger.error(f"Batch run failed: {e}")
        raise typer.Exit(1) from e

    documents = [
        result_document(result, identifier=request.identifier)
        for request, result in zip(requests, results)
    ]
    _write_output(documents, output=output)


if __name__ == "__main__":
    app()
