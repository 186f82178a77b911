from KBMirror.cli import main

if __name__ == "__main__":  # pragma: no cover - manual CLI invocation helper
    main()
