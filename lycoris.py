import sys
from pathlib import Path

from lycoris.lycoris_runtime import ScriptRunner


def run_script_file(file_path: str):
    """Run a Lycoris script file non-interactively and exit with appropriate status."""
    runner = ScriptRunner()
    p = Path(file_path)
    try:
        source = p.read_text(encoding="utf-8")
    except FileNotFoundError:
        print(f"Error: file not found: {file_path}", file=sys.stderr)
        raise SystemExit(1)
    result = runner.handle_script(source)
    # Print side effects (from `print`)
    for effect in result.side_effects:
        if effect.get('topics') == ['stdout']:
            print(effect.get('message', ''))
    if result.status == 'error':
        print(result.format_error(), file=sys.stderr)
        raise SystemExit(1)


def main():
    """Run a script file when provided, otherwise start the interactive REPL."""
    if len(sys.argv) > 1:
        arg = sys.argv[1]
        # Treat argv[1] as a script file when it's not a flag; run_script_file handles missing files
        if not arg.startswith("-"):
            run_script_file(arg)
            return

    print("Lycoris REPL v0.1")
    print("Type 'exit' or press Ctrl+D to quit.")

    runner = ScriptRunner()

    # REPL Loop
    while True:
        try:
            line = input(">> ").strip()

            if not line:
                continue
            if line == "exit":
                break

            result = runner.handle_script(line)

            # Print side effects (from `print`)
            for effect in result.side_effects:
                if effect.get('topics') == ['stdout']:
                    print(effect.get('message', ''))

            if result.status == 'error':
                # Pretty, location-aware message
                print(result.format_error(), file=sys.stderr)
                continue

            # Show the stack after each successful line
            if result.stack:
                print("stack: " + " ".join(result.stack))

        except EOFError:
            print("\nExiting.")
            break


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print("\nExiting.")
