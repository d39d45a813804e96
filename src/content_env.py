# src/content_env.py
"""
Generates JSON Schema files from the public Pydantic models in objects.py
(Product, GameConfig), placing each schema under content/meta/<ClassName>/schema.json
so catalog and config files can be validated while authoring them.
"""
import json
import logging
from pathlib import Path
from typing import List

from register import LOCAL_CONTENT, load_models

logger = logging.getLogger(__name__)


def write_schemas(output_base: Path = LOCAL_CONTENT / "meta") -> List[Path]:
    output_base.mkdir(parents=True, exist_ok=True)
    written: List[Path] = []
    for name, cls in sorted(load_models().items()):
        model_dir = output_base / name
        model_dir.mkdir(parents=True, exist_ok=True)
        schema_file = model_dir / "schema.json"
        with open(schema_file, "w", encoding="utf-8") as f:
            json.dump(cls.model_json_schema(), f, indent=2)
        logger.info("Wrote schema for %r to %s", name, schema_file)
        written.append(schema_file)
    return written


def main():
    logging.basicConfig(level=logging.INFO)
    for path in write_schemas():
        print(f"✔ {path}")


if __name__ == "__main__":
    main()
