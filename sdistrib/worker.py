"""Worker-side handling of jobs: model paths and error replies."""

from __future__ import annotations

import dataclasses
import os

from sdistrib.manager import RESULT_PORT
from sdistrib.protocol import Image, ImageError, Job

_MODEL_SUBDIRS = (
    ("model_path", "stable-diffusion"),
    ("clip_l_path", "clip"),
    ("clip_g_path", "clip"),
    ("t5xxl_path", "t5"),
    ("diffusion_model_path", "diffusion"),
    ("vae_path", "vae"),
    ("taesd_path", "taesd"),
    ("esrgan_path", "esrgan"),
    ("controlnet_path", "controlnet"),
    ("embeddings_path", "embeddings"),
    ("stacked_id_embeddings_path", "embeddings"),
    ("input_id_images_path", "input_id_images"),
)


def result_address(host: str) -> str:
    """Return the endpoint on which the manager talks to workers."""
    return f"tcp://{host}:{RESULT_PORT}"


def postfix_models_path(job: Job, model_path: str) -> Job:
    """Return a copy of ``job`` whose model paths point into ``model_path``.

    Each non-empty path is placed in the sub-folder for its kind of model;
    empty paths stay empty.
    """
    changes = {
        name: f"{model_path}/{subdir}/{getattr(job, name)}"
        for name, subdir in _MODEL_SUBDIRS
        if getattr(job, name)
    }
    result = dataclasses.replace(job, **changes)
    result.skip_layers = list(job.skip_layers)
    return result


def models_are_available(job: Job) -> bool:
    """True if every non-empty model path of the job exists."""
    return all(
        os.path.exists(getattr(job, name))
        for name, _ in _MODEL_SUBDIRS
        if getattr(job, name)
    )


def model_missing_reply(job: Job) -> Image:
    """Reply sent when the job names a model the worker does not have."""
    return Image(jobid=job.id, error=ImageError.MODEL_DOES_NOT_EXIST)