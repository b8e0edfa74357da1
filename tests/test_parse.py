import pytest

from sdistrib.parse import ArgumentError, HelpRequested, parse_args
from sdistrib.protocol import Job, RngType, SampleMethod, Schedule


def test_defaults_with_model_only():
    job = parse_args(["-m", "model.ckpt"])
    assert job.model_path == "model.ckpt"
    assert job.width == 512
    assert job.height == 512
    assert job.output_path == "output.png"
    assert job.n_threads >= 0
    assert job.seed == 42
    assert job.skip_layers == [7, 8, 9]


def test_diffusion_model_alone_is_enough():
    job = parse_args(["--diffusion-model", "flux.gguf"])
    assert job.diffusion_model_path == "flux.gguf"
    assert job.model_path == ""


def test_value_options_are_stored():
    job = parse_args(
        [
            "--model", "sd.safetensors",
            "-p", "a cat",
            "-n", "blurry",
            "-o", "cat.jpg",
            "-W", "768",
            "-H", "1024",
            "--steps", "30",
            "--cfg-scale", "5.5",
            "--strength", "0.5",
            "-s", "1234",
            "-b", "3",
            "-t", "4",
            "--clip-skip", "2",
            "--vae", "vae.bin",
            "--lora-model-dir", "loras",
            "--control-image", "edges.png",
        ]
    )
    assert job.model_path == "sd.safetensors"
    assert job.prompt == "a cat"
    assert job.negative_prompt == "blurry"
    assert job.output_path == "cat.jpg"
    assert job.width == 768
    assert job.height == 1024
    assert job.sample_steps == 30
    assert job.cfg_scale == 5.5
    assert job.strength == 0.5
    assert job.seed == 1234
    assert job.batch_count == 3
    assert job.n_threads == 4
    assert job.clip_skip == 2
    assert job.vae_path == "vae.bin"
    assert job.lora_model_dir == "loras"
    assert job.control_image_path == "edges.png"


def test_flags_are_set():
    job = parse_args(
        [
            "-m", "m",
            "--vae-tiling", "--control-net-cpu", "--normalize-input",
            "--clip-on-cpu", "--vae-on-cpu", "--diffusion-fa", "--canny",
            "-v", "--color",
        ]
    )
    assert job.vae_tiling
    assert job.control_net_cpu
    assert job.normalize_input
    assert job.clip_on_cpu
    assert job.vae_on_cpu
    assert job.diffusion_flash_attn
    assert job.canny_preprocess
    assert job.verbose
    assert job.color


def test_given_job_is_not_modified():
    base = Job(prompt="original")
    job = parse_args(["-m", "m", "-p", "changed"], base)
    assert job.prompt == "changed"
    assert base.prompt == "original"
    assert base.model_path == ""


def test_integer_prefix_is_accepted():
    job = parse_args(["-m", "m", "-W", "768abc"])
    assert job.width == 768


def test_non_numeric_value_is_invalid():
    with pytest.raises(ArgumentError, match="invalid parameter for argument: --width"):
        parse_args(["-m", "m", "--width", "wide"])


@pytest.mark.parametrize(
    "name, expected",
    [
        ("default", Schedule.DEFAULT),
        ("discrete", Schedule.DISCRETE),
        ("karras", Schedule.KARRAS),
        ("exponential", Schedule.EXPONENTIAL),
        ("ays", Schedule.AYS),
        ("gits", Schedule.GITS),
    ],
)
def test_schedule_names(name, expected):
    assert parse_args(["-m", "m", "--schedule", name]).schedule is expected


@pytest.mark.parametrize(
    "name, expected",
    [
        ("euler_a", SampleMethod.EULER_A),
        ("euler", SampleMethod.EULER),
        ("heun", SampleMethod.HEUN),
        ("dpm2", SampleMethod.DPM2),
        ("dpm++2s_a", SampleMethod.DPMPP2S_A),
        ("dpm++2m", SampleMethod.DPMPP2M),
        ("dpm++2mv2", SampleMethod.DPMPP2MV2),
        ("ipndm", SampleMethod.IPNDM),
        ("ipndm_v", SampleMethod.IPNDM_V),
        ("lcm", SampleMethod.LCM),
        ("ddim_trailing", SampleMethod.DDIM_TRAILING),
        ("tcd", SampleMethod.TCD),
    ],
)
def test_sampling_method_names(name, expected):
    assert parse_args(["-m", "m", "--sampling-method", name]).sample_method is expected


def test_unknown_schedule_is_invalid():
    with pytest.raises(ArgumentError, match="--schedule"):
        parse_args(["-m", "m", "--schedule", "linear"])


def test_rng_choices():
    assert parse_args(["-m", "m", "--rng", "std_default"]).rng_type is RngType.STD_DEFAULT_RNG
    assert parse_args(["-m", "m", "--rng", "cuda"]).rng_type is RngType.CUDA_RNG
    with pytest.raises(ArgumentError, match="--rng"):
        parse_args(["-m", "m", "--rng", "mt19937"])


def test_skip_layers_across_arguments():
    job = parse_args(["-m", "m", "--skip-layers", "[1,", "2", "3]"])
    assert job.skip_layers == [1, 2, 3]


def test_skip_layers_single_argument():
    job = parse_args(["-m", "m", "--skip-layers", "[4,5]"])
    assert job.skip_layers == [4, 5]


def test_skip_layers_must_start_with_bracket():
    with pytest.raises(ArgumentError, match="invalid parameter for argument: --skip-layers"):
        parse_args(["-m", "m", "--skip-layers", "1,2"])


def test_skip_layers_must_be_closed():
    with pytest.raises(ArgumentError, match="--skip-layers"):
        parse_args(["-m", "m", "--skip-layers", "[1,", "2"])


def test_skip_layers_rejects_words():
    with pytest.raises(ArgumentError, match="--skip-layers"):
        parse_args(["-m", "m", "--skip-layers", "[a,b]"])


def test_missing_value():
    with pytest.raises(ArgumentError, match="invalid parameter for argument: -p"):
        parse_args(["-m", "m", "-p"])


def test_unknown_argument():
    with pytest.raises(ArgumentError, match="unknown argument: --bogus"):
        parse_args(["-m", "m", "--bogus"])


def test_help_is_requested():
    with pytest.raises(HelpRequested):
        parse_args(["-m", "m", "--help"])


def test_model_is_required():
    with pytest.raises(ArgumentError, match="model_path/diffusion_model"):
        parse_args(["-p", "a cat"])


def test_output_is_required():
    with pytest.raises(ArgumentError, match="output_path"):
        parse_args(["-m", "m", "-o", ""])


@pytest.mark.parametrize("value", ["500", "0", "-64"])
def test_width_must_be_multiple_of_64(value):
    with pytest.raises(ArgumentError, match="the width must be a multiple of 64"):
        parse_args(["-m", "m", "-W", value])


def test_height_must_be_multiple_of_64():
    with pytest.raises(ArgumentError, match="the height must be a multiple of 64"):
        parse_args(["-m", "m", "-H", "100"])


def test_steps_must_be_positive():
    with pytest.raises(ArgumentError, match="the sample_steps must be greater than 0"):
        parse_args(["-m", "m", "--steps", "0"])


@pytest.mark.parametrize("value", ["1.5", "-0.1"])
def test_strength_range(value):
    with pytest.raises(ArgumentError, match=r"strength in \[0.0, 1.0\]"):
        parse_args(["-m", "m", "--strength", value])


def test_upscale_repeats_minimum():
    with pytest.raises(ArgumentError, match="upscale multiplier must be at least 1"):
        parse_args(["-m", "m", "--upscale-repeats", "0"])
    assert parse_args(["-m", "m", "--upscale-repeats", "2"]).upscale_repeats == 2


def test_negative_seed_is_randomised():
    job = parse_args(["-m", "m", "-s", "-1"])
    assert 0 <= job.seed <= 2**31 - 1


def test_non_positive_threads_use_cpu_count():
    job = parse_args(["-m", "m", "-t", "0"])
    assert job.n_threads >= 0
    assert parse_args(["-m", "m", "-t", "6"]).n_threads == 6