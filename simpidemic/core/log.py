"""Console logging shared by the codec, orchestrator and CLI."""


def log(msg: str) -> None:
    print(f"[simpidemic] {msg}", flush=True)
