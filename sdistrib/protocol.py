"""Job and image records exchanged between client, manager and worker."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Callable

import msgpack


class SampleMethod(IntEnum):
    """Sampler used by the diffusion process."""

    EULER_A = 0
    EULER = 1
    HEUN = 2
    DPM2 = 3
    DPMPP2S_A = 4
    DPMPP2M = 5
    DPMPP2MV2 = 6
    IPNDM = 7
    IPNDM_V = 8
    LCM = 9
    DDIM_TRAILING = 10
    TCD = 11


class Schedule(IntEnum):
    """Sigma schedule override."""

    DEFAULT = 0
    DISCRETE = 1
    KARRAS = 2
    EXPONENTIAL = 3
    AYS = 4
    GITS = 5


class RngType(IntEnum):
    """Random number generator used for the initial noise."""

    STD_DEFAULT_RNG = 0
    CUDA_RNG = 1


class ImageError(IntEnum):
    """Outcome of a job as reported by a worker."""

    OK = 0
    OUT_OF_MEMORY = 1
    MODEL_DOES_NOT_EXIST = 2


_ERROR_MESSAGES = {
    ImageError.OK: "OK",
    ImageError.OUT_OF_MEMORY: "Out of memory",
    ImageError.MODEL_DOES_NOT_EXIST: (
        "Model not found on worker. You may need to copy the model "
        "to the worker's model folder."
    ),
}


def error_message(error: ImageError | int) -> str:
    """Return a human-readable description of an image error code."""
    try:
        return _ERROR_MESSAGES[ImageError(error)]
    except ValueError:
        return "UNKNOWN"


def _as_int(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"expected an integer, got {value!r}")
    return value


def _as_float(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"expected a number, got {value!r}")
    return float(value)


def _as_bool(value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"expected a boolean, got {value!r}")
    return value


def _as_str(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    if not isinstance(value, str):
        raise ValueError(f"expected a string, got {value!r}")
    return value


def _as_bytes(value: Any) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    if not isinstance(value, (bytes, bytearray)):
        raise ValueError(f"expected binary data, got {value!r}")
    return bytes(value)


def _as_enum(enum_cls: type[IntEnum]) -> Callable[[Any], IntEnum]:
    return lambda value: enum_cls(_as_int(value))


def _as_optional_int(value: Any) -> int | None:
    return None if value is None else _as_int(value)


def _as_int_list(value: Any) -> list[int]:
    if not isinstance(value, (list, tuple)):
        raise ValueError(f"expected a list, got {value!r}")
    return [_as_int(item) for item in value]


def _unpack_array(data: bytes) -> list:
    obj = msgpack.unpackb(data, raw=False)
    if not isinstance(obj, list):
        raise ValueError("packed record is not an array")
    return obj


@dataclass
class Job:
    """Parameters of one image generation request."""

    id: int = 0
    n_threads: int = -1
    model_path: str = ""
    clip_l_path: str = ""
    clip_g_path: str = ""
    t5xxl_path: str = ""
    diffusion_model_path: str = ""
    vae_path: str = ""
    taesd_path: str = ""
    esrgan_path: str = ""
    controlnet_path: str = ""
    embeddings_path: str = ""
    stacked_id_embeddings_path: str = ""
    input_id_images_path: str = ""
    wtype: int | None = None  # None leaves the weight type unspecified
    lora_model_dir: str = ""
    output_path: str = "output.png"
    input_path: str = ""
    mask_path: str = ""
    control_image_path: str = ""

    prompt: str = ""
    negative_prompt: str = ""
    min_cfg: float = 1.0
    cfg_scale: float = 7.0
    guidance: float = 3.5
    eta: float = 0.0
    style_ratio: float = 20.0
    clip_skip: int = -1  # <= 0 means unspecified
    width: int = 512
    height: int = 512
    batch_count: int = 1

    video_frames: int = 6
    motion_bucket_id: int = 127
    fps: int = 6
    augmentation_level: float = 0.0

    sample_method: SampleMethod = SampleMethod.EULER_A
    schedule: Schedule = Schedule.DEFAULT
    sample_steps: int = 20
    strength: float = 0.75
    control_strength: float = 0.9
    rng_type: RngType = RngType.CUDA_RNG
    seed: int = 42
    verbose: bool = False
    vae_tiling: bool = False
    control_net_cpu: bool = False
    normalize_input: bool = False
    clip_on_cpu: bool = False
    vae_on_cpu: bool = False
    diffusion_flash_attn: bool = False
    canny_preprocess: bool = False
    color: bool = False
    upscale_repeats: int = 1

    skip_layers: list[int] = field(default_factory=lambda: [7, 8, 9])
    slg_scale: float = 0.0
    skip_layer_start: float = 0.01
    skip_layer_end: float = 0.2

    def equals_for_ctx(self, other: Job) -> bool:
        """True if both jobs can share one generation context."""
        return all(getattr(self, name) == getattr(other, name) for name in _CTX_FIELDS)

    def pack(self) -> bytes:
        """Serialize the job as a msgpack array."""
        values = []
        for name in _JOB_WIRE_FIELDS:
            value = getattr(self, name)
            if isinstance(value, IntEnum):
                value = int(value)
            elif name == "skip_layers":
                value = list(value)
            values.append(value)
        return msgpack.packb(values, use_bin_type=True)

    @classmethod
    def unpack(cls, data: bytes) -> Job:
        """Build a job from a msgpack array; missing trailing fields keep defaults."""
        values: dict[str, Any] = {}
        for name, value in zip(_JOB_WIRE_FIELDS, _unpack_array(data)):
            values[name] = _JOB_CONVERTERS[name](value)
        return cls(**values)


# The wire layout carries controlnet_path twice and never control_image_path;
# peers built against the same layout depend on this order.
_JOB_WIRE_FIELDS = (
    "id", "n_threads", "model_path", "clip_l_path", "clip_g_path",
    "t5xxl_path", "diffusion_model_path", "vae_path", "taesd_path",
    "esrgan_path", "controlnet_path", "embeddings_path",
    "stacked_id_embeddings_path", "input_id_images_path", "wtype",
    "lora_model_dir", "output_path", "input_path", "mask_path",
    "controlnet_path", "prompt", "negative_prompt", "min_cfg", "cfg_scale",
    "guidance", "eta", "style_ratio", "clip_skip", "width", "height",
    "batch_count", "video_frames", "motion_bucket_id", "fps",
    "augmentation_level", "sample_method", "schedule", "sample_steps",
    "strength", "control_strength", "rng_type", "seed", "verbose",
    "vae_tiling", "control_net_cpu", "normalize_input", "clip_on_cpu",
    "vae_on_cpu", "diffusion_flash_attn", "canny_preprocess", "color",
    "upscale_repeats", "skip_layers", "slg_scale", "skip_layer_start",
    "skip_layer_end",
)

_CTX_FIELDS = (
    "model_path", "clip_l_path", "clip_g_path", "t5xxl_path",
    "diffusion_model_path", "vae_path", "taesd_path", "esrgan_path",
    "controlnet_path", "embeddings_path", "stacked_id_embeddings_path",
    "input_id_images_path", "wtype", "lora_model_dir", "input_path",
    "mask_path", "control_image_path", "vae_tiling", "n_threads",
    "rng_type", "schedule", "clip_on_cpu", "control_net_cpu", "vae_on_cpu",
    "diffusion_flash_attn",
)

_INT_FIELDS = {
    "id", "n_threads", "clip_skip", "width", "height", "batch_count",
    "video_frames", "motion_bucket_id", "fps", "sample_steps", "seed",
    "upscale_repeats",
}
_FLOAT_FIELDS = {
    "min_cfg", "cfg_scale", "guidance", "eta", "style_ratio",
    "augmentation_level", "strength", "control_strength", "slg_scale",
    "skip_layer_start", "skip_layer_end",
}
_BOOL_FIELDS = {
    "verbose", "vae_tiling", "control_net_cpu", "normalize_input",
    "clip_on_cpu", "vae_on_cpu", "diffusion_flash_attn", "canny_preprocess",
    "color",
}
_SPECIAL_CONVERTERS: dict[str, Callable[[Any], Any]] = {
    "wtype": _as_optional_int,
    "sample_method": _as_enum(SampleMethod),
    "schedule": _as_enum(Schedule),
    "rng_type": _as_enum(RngType),
    "skip_layers": _as_int_list,
}


def _converter_for(name: str) -> Callable[[Any], Any]:
    if name in _SPECIAL_CONVERTERS:
        return _SPECIAL_CONVERTERS[name]
    if name in _INT_FIELDS:
        return _as_int
    if name in _FLOAT_FIELDS:
        return _as_float
    if name in _BOOL_FIELDS:
        return _as_bool
    return _as_str


_JOB_CONVERTERS = {name: _converter_for(name) for name in _JOB_WIRE_FIELDS}


@dataclass
class Image:
    """Result of a job: an encoded image or an error code."""

    jobid: int
    error: ImageError = ImageError.OK
    width: int = 0
    height: int = 0
    data: bytes = b""

    def pack(self) -> bytes:
        """Serialize the image as a msgpack array."""
        return msgpack.packb(
            [self.jobid, int(self.error), self.width, self.height, bytes(self.data)],
            use_bin_type=True,
        )

    @classmethod
    def unpack(cls, data: bytes) -> Image:
        """Build an image from a msgpack array."""
        converters = (_as_int, _as_enum(ImageError), _as_int, _as_int, _as_bytes)
        names = ("jobid", "error", "width", "height", "data")
        values = _unpack_array(data)
        if not values:
            raise ValueError("packed image has no job id")
        kwargs = {
            name: convert(value)
            for name, convert, value in zip(names, converters, values)
        }
        return cls(**kwargs)