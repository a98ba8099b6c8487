import json
import shlex
from collections.abc import Callable
from pathlib import Path

from servetunnel.config import Config
from servetunnel.supervisor import (
    build_serving_spec,
    build_tunnel_spec,
    get_venv_python,
    serving_launcher,
)
from servetunnel.supervisor._specs import (
    SERVING_MODULE,
    build_authtoken_command,
    build_example_request,
)

ConfigFactory = Callable[..., Config]


class TestServingLauncher:
    def test_defaults_to_venv_interpreter(self, make_config: ConfigFactory) -> None:
        config = make_config(paths={"venv_dir": "/opt/venv"})

        assert serving_launcher(config) == (
            "/opt/venv/bin/python",
            "-m",
            SERVING_MODULE,
        )

    def test_explicit_command_wins(self, make_config: ConfigFactory) -> None:
        config = make_config(serving={"command": ["vllm-stub", "--fast"]})

        assert serving_launcher(config) == ("vllm-stub", "--fast")

    def test_venv_python(self) -> None:
        assert get_venv_python(Path("env")) == Path("env/bin/python")


class TestBuildServingSpec:
    def test_primary_model_command(self, make_config: ConfigFactory) -> None:
        config = make_config(
            serving={
                "command": ["serve"],
                "extra_args_gpu": "--dtype float16 --max-model-len 4096",
            }
        )

        spec = build_serving_spec(config)

        assert spec.name == "serving"
        assert spec.command == (
            "serve",
            "--model",
            "org/primary-model",
            "--host",
            "127.0.0.1",
            "--port",
            "8000",
            "--trust-remote-code",
            "--dtype",
            "float16",
            "--max-model-len",
            "4096",
        )
        assert spec.log_path == config.log_files.serving

    def test_test_mode_uses_cpu_model_and_args(
        self, make_config: ConfigFactory
    ) -> None:
        config = make_config(
            serving={
                "command": ["serve"],
                "use_test_model": True,
                "extra_args_gpu": "--dtype float16",
                "extra_args_cpu": "--device cpu",
            }
        )

        command = build_serving_spec(config).command

        assert command[command.index("--model") + 1] == "org/test-model"
        assert command[-2:] == ("--device", "cpu")
        assert "float16" not in command

    def test_model_cache_environment(
        self, make_config: ConfigFactory, tmp_path: Path
    ) -> None:
        config = make_config(paths={"model_cache_dir": str(tmp_path / "models")})

        env = build_serving_spec(config).env

        assert env == {
            "HF_HOME": str(tmp_path / "models"),
            "HUGGINGFACE_HUB_CACHE": str(tmp_path / "models"),
        }

    def test_relative_cache_dir_is_made_absolute(
        self, make_config: ConfigFactory
    ) -> None:
        config = make_config(paths={"model_cache_dir": "models"})

        assert Path(build_serving_spec(config).env["HF_HOME"]).is_absolute()


class TestTunnelCommands:
    def test_tunnel_spec(self, make_config: ConfigFactory) -> None:
        config = make_config(tunnel={"command": ["/usr/local/bin/ngrok"]})

        spec = build_tunnel_spec(config)

        assert spec.name == "tunnel"
        assert spec.command == ("/usr/local/bin/ngrok", "http", "8000", "--log=stdout")
        assert spec.log_path == config.log_files.tunnel
        assert spec.env == {}

    def test_authtoken_command(self, make_config: ConfigFactory) -> None:
        assert build_authtoken_command(make_config()) == [
            "ngrok",
            "config",
            "add-authtoken",
            "secret-token",
        ]


class TestBuildExampleRequest:
    def test_is_valid_shell_with_json_body(self) -> None:
        url = "https://edge.example/v1/chat/completions"

        argv = shlex.split(build_example_request(url, "org/model"))

        assert argv[:4] == ["curl", "-X", "POST", url]
        assert argv[argv.index("-H") + 1] == "Content-Type: application/json"
        body = json.loads(argv[argv.index("-d") + 1])
        assert body["model"] == "org/model"
        assert body["messages"][-1] == {
            "role": "user",
            "content": "Hello! Who are you?",
        }

    def test_quotes_awkward_model_names(self) -> None:
        command = build_example_request("http://localhost:8000/x", "it's/model")

        body = json.loads(shlex.split(command)[-1])

        assert body["model"] == "it's/model"
