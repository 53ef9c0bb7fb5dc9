import sys
from jsw.common.logger import log
from jsw.ui.app import main

# Entry point for `python -m jsw`
def run() -> None:
    log.info("=== INITIALIZED NEW SESSION ===")
    try:
        main()
    except SystemExit:
        raise
    except Exception:
        # Full stack trace, always
        log.exception("Uncaught exception in entrypoint, exiting")
        sys.exit(1)

if __name__ == "__main__":
    run()
