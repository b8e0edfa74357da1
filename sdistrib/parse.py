"""Command-line parsing for image generation jobs."""

from __future__ import annotations

import dataclasses
import os
import random
import re
from collections.abc import Callable, Iterator, Sequence

from sdistrib.protocol import Job, RngType, SampleMethod, Schedule


class ArgumentError(ValueError):
    """Raised when the command line does not describe a valid job."""


class HelpRequested(Exception):
    """Raised when help was asked for on the command line."""


_SAMPLE_METHOD_NAMES = {
    "euler_a": SampleMethod.EULER_A,
    "euler": SampleMethod.EULER,
    "heun": SampleMethod.HEUN,
    "dpm2": SampleMethod.DPM2,
    "dpm++2s_a": SampleMethod.DPMPP2S_A,
    "dpm++2m": SampleMethod.DPMPP2M,
    "dpm++2mv2": SampleMethod.DPMPP2MV2,
    "ipndm": SampleMethod.IPNDM,
    "ipndm_v": SampleMethod.IPNDM_V,
    "lcm": SampleMethod.LCM,
    "ddim_trailing": SampleMethod.DDIM_TRAILING,
    "tcd": SampleMethod.TCD,
}

_SCHEDULE_NAMES = {
    "default": Schedule.DEFAULT,
    "discrete": Schedule.DISCRETE,
    "karras": Schedule.KARRAS,
    "exponential": Schedule.EXPONENTIAL,
    "ays": Schedule.AYS,
    "gits": Schedule.GITS,
}

_RNG_NAMES = {
    "std_default": RngType.STD_DEFAULT_RNG,
    "cuda": RngType.CUDA_RNG,
}

_INT_PREFIX = re.compile(r"\s*[+-]?\d+")
_FLOAT_PREFIX = re.compile(
    r"\s*[+-]?(?:(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?|inf(?:inity)?|nan)",
    re.IGNORECASE,
)
_LAYER_SEPARATOR = re.compile(r"[, ]+")

_RAND_MAX = 2**31 - 1


def _invalid(option: str) -> ArgumentError:
    return ArgumentError(f"invalid parameter for argument: {option}")


def _leading_int(text: str, bits: int) -> int:
    match = _INT_PREFIX.match(text)
    if match is None:
        raise ValueError(text)
    value = int(match.group())
    limit = 2 ** (bits - 1)
    if not -limit <= value < limit:
        raise ValueError(text)
    return value


def _to_int(text: str) -> int:
    return _leading_int(text, 32)


def _to_long(text: str) -> int:
    return _leading_int(text, 64)


def _to_float(text: str) -> float:
    match = _FLOAT_PREFIX.match(text)
    if match is None:
        raise ValueError(text)
    return float(match.group())


_VALUE_OPTIONS: dict[str, tuple[str, Callable[[str], object]]] = {}
for _names, _field, _convert in (
    (("-t", "--threads"), "n_threads", _to_int),
    (("-m", "--model"), "model_path", str),
    (("--clip_l",), "clip_l_path", str),
    (("--clip_g",), "clip_g_path", str),
    (("--t5xxl",), "t5xxl_path", str),
    (("--diffusion-model",), "diffusion_model_path", str),
    (("--vae",), "vae_path", str),
    (("--taesd",), "taesd_path", str),
    (("--control-net",), "controlnet_path", str),
    (("--upscale-model",), "esrgan_path", str),
    (("--embd-dir",), "embeddings_path", str),
    (("--stacked-id-embd-dir",), "stacked_id_embeddings_path", str),
    (("--input-id-images-dir",), "input_id_images_path", str),
    (("--lora-model-dir",), "lora_model_dir", str),
    (("-i", "--init-img"), "input_path", str),
    (("--mask",), "mask_path", str),
    (("--control-image",), "control_image_path", str),
    (("-o", "--output"), "output_path", str),
    (("-p", "--prompt"), "prompt", str),
    (("-n", "--negative-prompt"), "negative_prompt", str),
    (("--cfg-scale",), "cfg_scale", _to_float),
    (("--guidance",), "guidance", _to_float),
    (("--eta",), "eta", _to_float),
    (("--strength",), "strength", _to_float),
    (("--style-ratio",), "style_ratio", _to_float),
    (("--control-strength",), "control_strength", _to_float),
    (("-H", "--height"), "height", _to_int),
    (("-W", "--width"), "width", _to_int),
    (("--steps",), "sample_steps", _to_int),
    (("--clip-skip",), "clip_skip", _to_int),
    (("-b", "--batch-count"), "batch_count", _to_int),
    (("-s", "--seed"), "seed", _to_long),
    (("--slg-scale",), "slg_scale", _to_float),
    (("--skip-layer-start",), "skip_layer_start", _to_float),
    (("--skip-layer-end",), "skip_layer_end", _to_float),
):
    for _name in _names:
        _VALUE_OPTIONS[_name] = (_field, _convert)

_FLAG_OPTIONS = {
    "--vae-tiling": "vae_tiling",
    "--control-net-cpu": "control_net_cpu",
    "--normalize-input": "normalize_input",
    "--clip-on-cpu": "clip_on_cpu",
    "--vae-on-cpu": "vae_on_cpu",
    "--diffusion-fa": "diffusion_flash_attn",
    "--canny": "canny_preprocess",
    "-v": "verbose",
    "--verbose": "verbose",
    "--color": "color",
}

_CHOICE_OPTIONS = {
    "--rng": ("rng_type", _RNG_NAMES),
    "--schedule": ("schedule", _SCHEDULE_NAMES),
    "--sampling-method": ("sample_method", _SAMPLE_METHOD_NAMES),
}


def _parse_skip_layers(first: str, rest: Iterator[str], option: str) -> list[int]:
    if not first.startswith("["):
        raise _invalid(option)
    text = first
    while not text.endswith("]"):
        more = next(rest, None)
        if more is None:
            raise _invalid(option)
        text += " " + more
    inner = text[1:-1]
    tokens = _LAYER_SEPARATOR.split(inner) if inner else []
    if tokens and tokens[-1] == "":
        tokens.pop()
    try:
        return [_to_int(token) for token in tokens]
    except ValueError:
        raise _invalid(option) from None


def _validate(job: Job) -> None:
    if not job.model_path and not job.diffusion_model_path:
        raise ArgumentError(
            "the following arguments are required: model_path/diffusion_model"
        )
    if not job.output_path:
        raise ArgumentError("the following arguments are required: output_path")
    if job.width <= 0 or job.width % 64 != 0:
        raise ArgumentError("the width must be a multiple of 64")
    if job.height <= 0 or job.height % 64 != 0:
        raise ArgumentError("the height must be a multiple of 64")
    if job.sample_steps <= 0:
        raise ArgumentError("the sample_steps must be greater than 0")
    if job.strength < 0.0 or job.strength > 1.0:
        raise ArgumentError("can only work with strength in [0.0, 1.0]")


def parse_args(argv: Sequence[str], job: Job | None = None) -> Job:
    """Return a job built from command-line arguments on top of ``job``.

    The given job is left unchanged. Raises ArgumentError for a bad command
    line and HelpRequested for -h/--help.
    """
    result = dataclasses.replace(job) if job is not None else Job()
    result.skip_layers = list(result.skip_layers)
    args = iter(argv)
    for arg in args:
        if arg in ("-h", "--help"):
            raise HelpRequested()
        if arg in _FLAG_OPTIONS:
            setattr(result, _FLAG_OPTIONS[arg], True)
            continue
        if arg not in _VALUE_OPTIONS and arg not in _CHOICE_OPTIONS and arg not in (
            "--upscale-repeats",
            "--skip-layers",
        ):
            raise ArgumentError(f"unknown argument: {arg}")

        value = next(args, None)
        if value is None:
            raise _invalid(arg)

        if arg in _VALUE_OPTIONS:
            field_name, convert = _VALUE_OPTIONS[arg]
            try:
                setattr(result, field_name, convert(value))
            except ValueError:
                raise _invalid(arg) from None
        elif arg in _CHOICE_OPTIONS:
            field_name, choices = _CHOICE_OPTIONS[arg]
            if value not in choices:
                raise _invalid(arg)
            setattr(result, field_name, choices[value])
        elif arg == "--upscale-repeats":
            try:
                result.upscale_repeats = _to_int(value)
            except ValueError:
                raise _invalid(arg) from None
            if result.upscale_repeats < 1:
                raise ArgumentError("upscale multiplier must be at least 1")
        else:
            result.skip_layers = _parse_skip_layers(value, args, arg)

    if result.n_threads <= 0:
        result.n_threads = os.cpu_count() or 0

    _validate(result)

    if result.seed < 0:
        result.seed = random.randint(0, _RAND_MAX)
    return result