from sdistrib.protocol import Image, ImageError, Job
from sdistrib.worker import (
    model_missing_reply,
    models_are_available,
    postfix_models_path,
    result_address,
)


def test_result_address():
    assert result_address("localhost") == "tcp://localhost:4134"


def test_postfix_models_path_places_models_in_subdirs():
    job = Job(
        model_path="sd.gguf",
        clip_l_path="l.safetensors",
        t5xxl_path="t5.bin",
        vae_path="vae.bin",
        stacked_id_embeddings_path="ids",
        input_id_images_path="faces",
    )
    result = postfix_models_path(job, "/models")
    assert result.model_path == "/models/stable-diffusion/sd.gguf"
    assert result.clip_l_path == "/models/clip/l.safetensors"
    assert result.t5xxl_path == "/models/t5/t5.bin"
    assert result.vae_path == "/models/vae/vae.bin"
    assert result.stacked_id_embeddings_path == "/models/embeddings/ids"
    assert result.input_id_images_path == "/models/input_id_images/faces"


def test_postfix_models_path_keeps_empty_and_other_fields():
    job = Job(model_path="sd.gguf", prompt="a cat", output_path="cat.png")
    result = postfix_models_path(job, "/models")
    assert result.clip_g_path == ""
    assert result.diffusion_model_path == ""
    assert result.controlnet_path == ""
    assert result.prompt == "a cat"
    assert result.output_path == "cat.png"
    assert job.model_path == "sd.gguf"


def test_models_available_when_all_exist(tmp_path):
    sd_dir = tmp_path / "stable-diffusion"
    sd_dir.mkdir()
    (sd_dir / "sd.gguf").write_bytes(b"x")
    vae_dir = tmp_path / "vae"
    vae_dir.mkdir()
    (vae_dir / "vae.bin").write_bytes(b"x")
    job = postfix_models_path(Job(model_path="sd.gguf", vae_path="vae.bin"), str(tmp_path))
    assert models_are_available(job) is True


def test_models_missing(tmp_path):
    sd_dir = tmp_path / "stable-diffusion"
    sd_dir.mkdir()
    (sd_dir / "sd.gguf").write_bytes(b"x")
    job = postfix_models_path(Job(model_path="sd.gguf", vae_path="vae.bin"), str(tmp_path))
    assert models_are_available(job) is False


def test_job_without_models_is_available():
    assert models_are_available(Job()) is True


def test_model_missing_reply():
    reply = model_missing_reply(Job(id=17))
    assert reply.jobid == 17
    assert reply.error == ImageError.MODEL_DOES_NOT_EXIST
    assert reply.data == b""
    assert Image.unpack(reply.pack()) == reply