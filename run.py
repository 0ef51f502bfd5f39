import logging
import argparse
from app import create_app

log = logging.getLogger('werkzeug')
log.disabled = True

app = create_app()

def main() -> None:
    p = argparse.ArgumentParser(prog="threadclip")
    p.add_argument("--host", default="0.0.0.0")
    p.add_argument("--port", type=int, default=8080)
    p.add_argument("--debug", action="store_true")
    args = p.parse_args()

    print(f"ThreadClip starting on http://{args.host}:{args.port}", flush=True)
    app.run(host=args.host, port=args.port, debug=args.debug)

if __name__ == "__main__":
    main()
