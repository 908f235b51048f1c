"""
Flask web application for Dialog Compiler - browse and preview compiled languages
"""

import base64
from pathlib import Path
from typing import Any, Dict

from flask import Flask, jsonify, request

from dialog_compiler.export.cache import decode_language, encode_language
from dialog_compiler.parser.errors import DialogCompileError
from dialog_compiler.parser.parser import CompileContext, LanguageParser, compile_language
from dialog_compiler.parser.sources import (
    DIALOG_DIR,
    PRIMARY_SOURCE_NAME,
    ContentRegistry,
    Line,
    MemorySource,
    iter_language_lines,
    iter_overlay_lines,
    language_id_from_path,
    normalize_virtual_path,
)


def language_payload(language, context: CompileContext = None) -> Dict[str, Any]:
    """Convert a compiled language to the JSON returned by the API"""
    payload = language.to_dict()
    payload["key_count"] = len(language.raw)
    if context is not None:
        payload["conflicts"] = [c.to_dict() for c in context.conflicts]
        payload["warnings"] = list(context.warnings)
        payload["sources"] = dict(context.tracker.line_sources)
    return payload


def compile_posted(data: Dict[str, Any]):
    """Compile dialog text posted as {"content": ..., "overlays": {name: text}}"""
    content = data.get("content", "")
    overlays = data.get("overlays") or {}
    virtual_path = normalize_virtual_path(data.get("path") or f"{DIALOG_DIR}/English")

    registry = ContentRegistry()
    for name, text in overlays.items():
        registry.add(MemorySource(name, {virtual_path: text}))

    context = CompileContext()
    parser = LanguageParser(context, guard_cycles=data.get("guard_cycles", True))

    def events():
        if not content:
            yield from iter_language_lines(virtual_path, registry)
            return
        # Posted text stands in for the primary file; it may still declare its own id
        yield Line(f"LANGUAGE={language_id_from_path(virtual_path)}")
        for number, text in enumerate(content.split("\n"), 1):
            yield Line(text, PRIMARY_SOURCE_NAME, number)
        yield from iter_overlay_lines(virtual_path, registry)

    language = parser.parse_events(events())
    return language, context


def create_app(content_root=None, overlays=()):
    """Create and configure the Flask application"""
    app = Flask(__name__)

    # Default to ./Content if not specified
    if content_root is None:
        content_root = Path.cwd() / "Content"
    else:
        content_root = Path(content_root)

    app.config["CONTENT_ROOT"] = content_root
    app.config["OVERLAY_ROOTS"] = [Path(p) for p in overlays]

    def registry() -> ContentRegistry:
        return ContentRegistry.from_paths(app.config["CONTENT_ROOT"], app.config["OVERLAY_ROOTS"])

    @app.route("/api/languages")
    def list_languages():
        """List the primary dialog files"""
        dialog_dir = app.config["CONTENT_ROOT"] / DIALOG_DIR
        files = []

        if dialog_dir.exists():
            for txt_file in sorted(dialog_dir.rglob("*.txt")):
                rel_path = txt_file.relative_to(app.config["CONTENT_ROOT"]).with_suffix("")
                files.append(
                    {
                        "path": str(txt_file),
                        "virtual_path": rel_path.as_posix(),
                        "name": txt_file.stem,
                    }
                )

        return jsonify({"languages": files})

    @app.route("/api/language/<path:virtual_path>")
    def get_language(virtual_path):
        """Compile a language from the content root and the overlays"""
        load_primary = request.args.get("primary", "1") != "0"
        load_overlays = request.args.get("overlays", "1") != "0"

        primary = registry().primary_file(virtual_path)
        if not primary.resolve().is_relative_to(app.config["CONTENT_ROOT"].resolve()):
            return jsonify({"error": "Language not found"}), 404
        if load_primary and not primary.is_file():
            return jsonify({"error": "Language not found"}), 404

        context = CompileContext()
        try:
            language = compile_language(
                virtual_path,
                registry(),
                load_primary=load_primary,
                load_overlays=load_overlays,
                context=context,
            )
        except DialogCompileError as e:
            return jsonify({"error": str(e)}), 400

        return jsonify(language_payload(language, context))

    @app.route("/api/compile", methods=["POST"])
    def compile_content():
        """Compile posted dialog text and return the resolved language"""
        data = request.get_json(silent=True) or {}
        try:
            language, context = compile_posted(data)
        except DialogCompileError as e:
            return jsonify({"error": str(e)}), 400

        return jsonify(language_payload(language, context))

    @app.route("/api/export", methods=["POST"])
    def export_cache():
        """Compile posted dialog text and return its binary cache, base64 encoded"""
        data = request.get_json(silent=True) or {}
        try:
            language, _ = compile_posted(data)
            blob = encode_language(language)
        except DialogCompileError as e:
            return jsonify({"error": str(e)}), 400

        return jsonify({"success": True, "id": language.id, "cache": base64.b64encode(blob).decode("ascii")})

    @app.route("/api/import", methods=["POST"])
    def import_cache():
        """Decode a base64 binary cache back into a language"""
        data = request.get_json(silent=True) or {}
        try:
            blob = base64.b64decode(data.get("cache", ""), validate=True)
            language = decode_language(blob)
        except (ValueError, DialogCompileError) as e:
            return jsonify({"error": str(e)}), 400

        return jsonify(language_payload(language))

    return app


def main():
    """Run the development server"""
    import argparse

    parser = argparse.ArgumentParser(description="Dialog Compiler Web Preview")
    parser.add_argument("--content", "-c", help="Path to the content directory", default=None)
    parser.add_argument("--overlay", "-o", help="Overlay folder or zip (repeatable)", action="append", default=[])
    parser.add_argument("--port", "-p", help="Port to run on", type=int, default=5000)
    parser.add_argument("--debug", help="Run in debug mode", action="store_true")

    args = parser.parse_args()

    app = create_app(content_root=args.content, overlays=args.overlay)

    print(f"\n{'=' * 60}")
    print("📖 Dialog Compiler Web Preview")
    print(f"{'=' * 60}")
    print(f"\n📂 Content directory: {app.config['CONTENT_ROOT']}")
    print(f"🌐 Server running at: http://localhost:{args.port}")
    print("\nPress Ctrl+C to stop\n")

    app.run(host="0.0.0.0", port=args.port, debug=args.debug)


if __name__ == "__main__":
    main()
