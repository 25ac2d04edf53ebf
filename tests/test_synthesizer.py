from __future__ import annotations

import unittest

from fakes import FakeReplicateClient, nsfw_error

from note_mint.errors import GenerationError, NSFWExhaustedError, ValidationError
from note_mint.retry import RetryEvent
from note_mint.synthesizer import GENERATION_SETTINGS, ReplicateImageSynthesizer, is_nsfw_rejection


class _FileOutput:
    def __init__(self, url: str) -> None:
        self.url = url


class TestReplicateImageSynthesizer(unittest.TestCase):
    def test_sends_fixed_generation_settings(self) -> None:
        fake = FakeReplicateClient([["https://replicate.delivery/a.png"]])
        synth = ReplicateImageSynthesizer("r8-test", model="owner/model:v1", client=fake)

        url = synth.synthesize("a cat reading the news")

        self.assertEqual(url, "https://replicate.delivery/a.png")
        call = fake.calls[0]
        self.assertEqual(call["ref"], "owner/model:v1")
        self.assertEqual(
            call["input"],
            {
                "prompt": "a cat reading the news",
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
            },
        )
        self.assertEqual(synth.build_input("x"), {"prompt": "x", **GENERATION_SETTINGS})

    def test_uses_first_of_several_outputs(self) -> None:
        fake = FakeReplicateClient([[_FileOutput("https://r/1.png"), _FileOutput("https://r/2.png")]])
        synth = ReplicateImageSynthesizer("r8-test", client=fake)

        self.assertEqual(synth.synthesize("prompt"), "https://r/1.png")

    def test_nsfw_twice_then_success_takes_three_attempts(self) -> None:
        fake = FakeReplicateClient([nsfw_error(), nsfw_error(), ["https://r/ok.png"]])
        events: list[RetryEvent] = []
        synth = ReplicateImageSynthesizer("r8-test", client=fake, on_retry=events.append)

        url = synth.synthesize("prompt")

        self.assertEqual(url, "https://r/ok.png")
        self.assertEqual(len(fake.calls), 3)
        self.assertEqual(len(events), 2)
        self.assertEqual(events[0].reason, "nsfw_filtered")
        for call in fake.calls:
            self.assertEqual(call["input"], fake.calls[0]["input"])

    def test_always_nsfw_fails_after_four_attempts(self) -> None:
        fake = FakeReplicateClient([nsfw_error() for _ in range(10)])
        synth = ReplicateImageSynthesizer("r8-test", client=fake)

        with self.assertRaises(NSFWExhaustedError) as ctx:
            synth.synthesize("prompt")

        self.assertEqual(len(fake.calls), 4)
        self.assertEqual(ctx.exception.attempts, 4)
        self.assertIsInstance(ctx.exception, GenerationError)
        self.assertIn("NSFW", str(ctx.exception))

    def test_attempt_counts_already_spent_tries(self) -> None:
        fake = FakeReplicateClient([nsfw_error() for _ in range(10)])
        synth = ReplicateImageSynthesizer("r8-test", client=fake)

        with self.assertRaises(NSFWExhaustedError):
            synth.synthesize("prompt", attempt=2)

        self.assertEqual(len(fake.calls), 2)

    def test_other_failures_are_not_retried(self) -> None:
        fake = FakeReplicateClient([RuntimeError("model is booting"), ["https://r/ok.png"]])
        synth = ReplicateImageSynthesizer("r8-test", client=fake)

        with self.assertRaises(GenerationError) as ctx:
            synth.synthesize("prompt")

        self.assertNotIsInstance(ctx.exception, NSFWExhaustedError)
        self.assertEqual(len(fake.calls), 1)
        self.assertIsInstance(ctx.exception.__cause__, RuntimeError)

    def test_empty_output_is_generation_error(self) -> None:
        fake = FakeReplicateClient([[]])
        synth = ReplicateImageSynthesizer("r8-test", client=fake)

        with self.assertRaises(GenerationError):
            synth.synthesize("prompt")

    def test_empty_prompt_makes_no_call(self) -> None:
        fake = FakeReplicateClient([])
        synth = ReplicateImageSynthesizer("r8-test", client=fake)

        with self.assertRaises(ValidationError):
            synth.synthesize("   ")
        self.assertEqual(fake.calls, [])


class TestIsNsfwRejection(unittest.TestCase):
    def test_detects_marker_in_message(self) -> None:
        self.assertEqual(is_nsfw_rejection(nsfw_error()), (True, "nsfw_filtered"))

    def test_ignores_other_errors(self) -> None:
        self.assertEqual(is_nsfw_rejection(RuntimeError("CUDA out of memory")), (False, None))


if __name__ == "__main__":
    unittest.main()
