# sdistrib

sdistrib passes image-generation jobs from clients to workers through a
least-recently-used broker over ZeroMQ. Jobs and replies are msgpack-encoded.

- `sdistrib.manager`: the broker (`Broker`) and the `sdistrib-manager` command.
  Clients send jobs on port 4133; workers talk to it on port 4134. Each job goes
  to the worker that has been ready longest, and the worker's reply goes back to
  the client that sent the job.
- `sdistrib.client`: the `sdistrib-client` command. It builds a `Job` from the
  command line, sends it to the broker, waits for the `Image` reply and writes
  the image data to the job's output path.
- `sdistrib.parse`: the command-line option parser that turns arguments into a `Job`.
- `sdistrib.protocol`: the `Job` and `Image` records, their msgpack form, and the
  enums `SampleMethod`, `Schedule`, `RngType` and `ImageError`.
- `sdistrib.messaging`: small helpers for framed ZeroMQ messages.
- `sdistrib.worker`: worker-side helpers for locating model files and building
  the "model missing" reply.

## What is not included

The package has no worker process and does not generate images. There is no
worker command: `sdistrib.worker` only rewrites model paths, checks that model
files exist and builds the reply for a missing model. To serve jobs you need a
program of your own that connects a REQ socket to port 4134, sends `READY`, and
answers each job with an `Image` (see "Worker side" below).

## Starting the broker

```
sdistrib-manager
```

The broker binds `tcp://*:4133` for clients and `tcp://*:4134` for workers and
runs until interrupted.

## Submitting a job

```
sdistrib-client <manager host> [options]
```

The client connects to `tcp://<manager host>:4133`, for example:

```
sdistrib-client 192.168.1.10 -m model.safetensors -p "a lighthouse at dusk" -o lighthouse.png
```

It prints the job id of the reply. If the worker reports an error, the client
prints its description and writes no file; otherwise the image data is written
to the output path. With no arguments it prints a usage line and exits with 1;
a bad option prints an error and exits with 1; `-h`/`--help` exits with 0.

A model is required: give `-m/--model` or `--diffusion-model`.

| Option | Meaning | Default |
| --- | --- | --- |
| `-p`, `--prompt` | prompt text | empty |
| `-n`, `--negative-prompt` | negative prompt | empty |
| `-o`, `--output` | output file; must not be empty | `output.png` |
| `-W`, `--width` / `-H`, `--height` | image size, a positive multiple of 64 | 512 |
| `--steps` | sampling steps, greater than 0 | 20 |
| `--cfg-scale` | classifier-free guidance scale | 7.0 |
| `--guidance` | guidance | 3.5 |
| `--eta` | eta | 0.0 |
| `--strength` | strength, within [0.0, 1.0] | 0.75 |
| `--style-ratio` | style ratio | 20.0 |
| `--control-strength` | control strength | 0.9 |
| `--clip-skip` | CLIP skip; 0 or less means unspecified | -1 |
| `-s`, `--seed` | seed; a negative value picks a random one | 42 |
| `--sampling-method` | `euler_a`, `euler`, `heun`, `dpm2`, `dpm++2s_a`, `dpm++2m`, `dpm++2mv2`, `ipndm`, `ipndm_v`, `lcm`, `ddim_trailing`, `tcd` | `euler_a` |
| `--schedule` | `default`, `discrete`, `karras`, `exponential`, `ays`, `gits` | `default` |
| `--rng` | `std_default` or `cuda` | `cuda` |
| `-b`, `--batch-count` | number of images | 1 |
| `--upscale-repeats` | upscale repeats, at least 1 | 1 |
| `-t`, `--threads` | threads; 0 or less uses the CPU count | CPU count |

Path options: `--clip_l`, `--clip_g`, `--t5xxl`, `--vae`, `--taesd`,
`--control-net`, `--upscale-model`, `--embd-dir`, `--stacked-id-embd-dir`,
`--input-id-images-dir`, `--lora-model-dir`, `-i/--init-img`, `--mask`,
`--control-image`.

Flags: `--vae-tiling`, `--control-net-cpu`, `--normalize-input`, `--clip-on-cpu`,
`--vae-on-cpu`, `--diffusion-fa`, `--canny`, `-v/--verbose`, `--color`.

Skip-layer guidance: `--slg-scale`, `--skip-layer-start`, `--skip-layer-end` and
`--skip-layers`, which takes a bracketed list, either as one argument
(`--skip-layers [7,8,9]`) or spread over several (`--skip-layers [7, 8, 9]`).
The default list is `[7, 8, 9]`.

## Using the library

```python
from sdistrib.parse import ArgumentError, parse_args
from sdistrib.protocol import Image, ImageError, Job, error_message

try:
    job = parse_args(["-m", "model.safetensors", "-p", "a red fox"], Job(id=1))
except ArgumentError as exc:
    print(exc)
else:
    assert Job.unpack(job.pack()).prompt == "a red fox"

reply = Image.unpack(Image(jobid=1, error=ImageError.OUT_OF_MEMORY).pack())
print(error_message(reply.error))  # "Out of memory"
```

`parse_args(argv, job=None)` returns a new `Job` built on top of `job` (or of a
default `Job`); the job passed in is left unchanged. It raises `ArgumentError`
for unknown, missing or malformed options and failed checks, and
`HelpRequested` for `-h/--help`.

`Job.pack()` writes the job as a msgpack array in a fixed field order. That
layout carries `controlnet_path` in two places and does not carry
`control_image_path`, so `control_image_path` does not survive a round trip.
`Job.unpack()` keeps the defaults for trailing fields that are missing.
`Job.equals_for_ctx(other)` tells whether two jobs agree on every setting that
affects the generation context. `error_message(error)` describes an
`ImageError` and returns `"UNKNOWN"` for codes it does not know.

### Broker

```python
from sdistrib.manager import Broker

with Broker("tcp://127.0.0.1:4133", "tcp://127.0.0.1:4134") as broker:
    broker.poll_once(timeout=100)
```

`Broker(frontend_endpoint, backend_endpoint, context=None, out=None)` binds two
ROUTER sockets. `poll_once(timeout)` waits up to `timeout` milliseconds and
handles what has arrived, watching the client side only while a worker is
ready; it returns the number of sockets handled. `handle_backend()` queues the
sending worker and forwards its reply, if any, to the client;
`handle_frontend()` hands a client request to the longest-ready worker and
raises `LookupError` if none is ready. Each routed request is logged as
`<client> -> <worker>`. `run()` loops forever and `close()` releases the
sockets.

### Worker side

A worker connects a REQ socket to `sdistrib.worker.result_address(host)`, sends
`READY`, and then receives `[client address][empty][packed Job]`; it answers
with `[client address][empty][packed Image]`.

- `postfix_models_path(job, model_path)` returns a copy of the job whose
  non-empty model paths lie under sub-folders of `model_path`:
  `stable-diffusion/`, `clip/`, `t5/`, `diffusion/`, `vae/`, `taesd/`,
  `esrgan/`, `controlnet/`, `embeddings/`, `input_id_images/`.
- `models_are_available(job)` is true when every non-empty model path exists.
- `model_missing_reply(job)` builds the `Image` with
  `ImageError.MODEL_DOES_NOT_EXIST` for that job.

### Messaging helpers

`sdistrib.messaging` provides `send_string`, `send_more`, `recv_string`,
`try_recv_string`, `receive_empty_message`, `send_packed`, `recv_packed`,
`set_random_identity` (a routing id such as `1A2B-3C4D`), `dump` and
`dump_message` for printing frames, `is_text_data`, `clock_ms`, `sleep_ms` and
`console`.