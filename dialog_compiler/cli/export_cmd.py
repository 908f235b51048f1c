"""
Export a compiled dialog file to a binary language cache
"""

import sys
from pathlib import Path

from dialog_compiler.export.cache import save_cache
from dialog_compiler.parser.parser import LanguageParser


def export_to_cache(txt_path: Path, output_path: Path = None):
    """Compile a single dialog .txt file and write its binary cache"""

    # Parse the dialog file
    parser = LanguageParser()
    language = parser.parse_file(txt_path)

    if parser.context.warnings:
        print(f"⚠️  Warning: Dialog has conflicting keys:")
        for warning in parser.context.warnings:
            print(f"  • {warning}")

    # Prepare output path
    if output_path is None:
        output_path = txt_path.with_suffix('.export')

    save_cache(language, output_path)

    print(f"✅ Exported to: {output_path}")
    print(f"   • {len(language.raw)} keys")
    print(f"   • language {language.id}")

    return output_path


def main():
    """Main entry point"""
    if len(sys.argv) < 2:
        print("Usage: dialog-export <dialog_file.txt> [output.export]")
        print("\nExample:")
        print("  dialog-export Content/Dialog/English.txt")
        sys.exit(1)

    txt_path = Path(sys.argv[1])

    if not txt_path.exists():
        print(f"❌ File not found: {txt_path}")
        sys.exit(1)

    output_path = None
    if len(sys.argv) >= 3:
        output_path = Path(sys.argv[2])

    try:
        export_to_cache(txt_path, output_path)
    except Exception as e:
        print(f"❌ Export failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
