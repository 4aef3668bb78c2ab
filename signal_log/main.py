from signal_log.core.app_factory import create_app

app = create_app()


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    uvicorn.run("signal_log.main:app", host="0.0.0.0", port=8000, log_config=None)


if __name__ == "__main__":
    run()
