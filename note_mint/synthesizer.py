from __future__ import annotations

from typing import Any, Protocol

import replicate

from .config_schema import DEFAULT_SDXL_MODEL
from .errors import GenerationError, NSFWExhaustedError, ValidationError
from .retry import OnRetryFn, RetriesExhausted, RetryPolicy, SleepFn, call_with_retries


class _ReplicateClient(Protocol):
    def run(self, ref: str, input: dict[str, Any] | None = None, **kwargs: Any) -> Any: ...


# Past three NSFW rejections the prompt itself is the problem; more attempts rarely help.
MAX_NSFW_RETRIES = 3

NSFW_RETRY_POLICY = RetryPolicy(max_attempts=MAX_NSFW_RETRIES + 1, delay_seconds=0.0)

_NSFW_MARKER = "NSFW"

# Rendering settings shared by every collectible; callers only choose the prompt.
GENERATION_SETTINGS: dict[str, Any] = {
    "width": 768,
    "height": 768,
    "refine": "expert_ensemble_refiner",
    "scheduler": "K_EULER",
    "lora_scale": 0.6,
    "num_outputs": 1,
    "guidance_scale": 7.5,
    "apply_watermark": False,
    "high_noise_frac": 0.8,
    "negative_prompt": "",
    "prompt_strength": 0.8,
    "num_inference_steps": 25,
}


def is_nsfw_rejection(exc: BaseException) -> tuple[bool, str | None]:
    """Replicate reports safety-filtered outputs as a failed prediction mentioning NSFW."""
    if _NSFW_MARKER in str(exc):
        return True, "nsfw_filtered"

    prediction = getattr(exc, "prediction", None)
    detail = getattr(prediction, "error", None)
    if isinstance(detail, str) and _NSFW_MARKER in detail:
        return True, "nsfw_filtered"

    return False, None


def _output_url(item: Any) -> str | None:
    if isinstance(item, str):
        return item.strip() or None

    # replicate>=1.0 wraps outputs in FileOutput objects.
    url = getattr(item, "url", None)
    if isinstance(url, str) and url.strip():
        return url.strip()
    return None


def _first_output_url(output: Any) -> str:
    if isinstance(output, (list, tuple)):
        items = list(output)
    elif output is None:
        items = []
    elif isinstance(output, str) or hasattr(output, "url"):
        items = [output]
    else:
        items = list(output)

    if not items:
        raise GenerationError("Image generation returned no outputs")

    url = _output_url(items[0])
    if url is None:
        raise GenerationError(f"Image generation returned an unusable output: {items[0]!r}")
    return url


class ReplicateImageSynthesizer:
    """
    Text-to-image through a Replicate-hosted SDXL model.

    Every call uses the fixed GENERATION_SETTINGS. Outputs rejected by the NSFW filter
    are regenerated up to MAX_NSFW_RETRIES times; other failures are not retried.
    """

    def __init__(
        self,
        api_token: str,
        *,
        model: str = DEFAULT_SDXL_MODEL,
        client: _ReplicateClient | None = None,
        timeout_seconds: float | None = None,
        on_retry: OnRetryFn | None = None,
        sleep_fn: SleepFn | None = None,
    ) -> None:
        token = (api_token or "").strip()
        if not token and client is None:
            raise ValueError("api_token must be a non-empty string")

        self._model = (model or "").strip() or DEFAULT_SDXL_MODEL
        self._on_retry = on_retry
        self._sleep_fn = sleep_fn
        self._client: _ReplicateClient = client or replicate.Client(
            api_token=token,
            timeout=timeout_seconds,
        )

    @property
    def model(self) -> str:
        return self._model

    def build_input(self, prompt: str) -> dict[str, Any]:
        return {"prompt": prompt, **GENERATION_SETTINGS}

    def _run_once(self, prompt: str) -> str:
        output = self._client.run(self._model, input=self.build_input(prompt))
        return _first_output_url(output)

    def synthesize(self, prompt: str, attempt: int = 0) -> str:
        """
        Generate one image and return its (short-lived) URL.

        attempt is the number of NSFW-rejected attempts already spent on this prompt.
        """
        text = (prompt or "").strip()
        if not text:
            raise ValidationError("prompt must be a non-empty string")

        spent = int(attempt)
        if spent < 0 or spent > MAX_NSFW_RETRIES:
            raise ValueError(f"attempt must be between 0 and {MAX_NSFW_RETRIES}")

        try:
            return call_with_retries(
                lambda: self._run_once(prompt),
                policy=NSFW_RETRY_POLICY,
                is_retryable=is_nsfw_rejection,
                operation=f"replicate.run:{self._model}",
                on_retry=self._on_retry,
                sleep_fn=self._sleep_fn,
                first_attempt=spent + 1,
            )
        except RetriesExhausted as e:
            raise NSFWExhaustedError(
                f"Image generation rejected as NSFW on {e.attempts} attempts: {e.last_error}",
                attempts=e.attempts,
            ) from e.last_error
        except GenerationError:
            raise
        except Exception as e:
            raise GenerationError(f"Image generation failed ({self._model}): {e}") from e
