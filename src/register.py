# src/register.py
"""
Scans content source folders (the local `content/` directory plus any extra
folders passed in), loads all JSON definitions into Pydantic models, and
registers them in a central registry.
Ignores any subfolder named "meta" or starting with a dot.
Models with an `id` field are stored in a dict by id, later folders overriding
earlier definitions when duplicates occur; other models are stored in lists.
"""
import json
import logging
import inspect
from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ValidationError

import objects as G

logger = logging.getLogger(__name__)

# Local content directory
LOCAL_CONTENT = Path(__file__).resolve().parent.parent / "content"

Registry = Dict[str, Union[List[BaseModel], Dict[object, BaseModel]]]


def is_valid_folder(path: Path) -> bool:
    return (
        path.is_dir()
        and not path.name.startswith('.')
        and path.name != 'meta'
    )


def load_models() -> Dict[str, type]:
    """
    Collect the public Pydantic model classes from objects.py.
    Returns a mapping of model_name -> class.
    """
    models: Dict[str, type] = {}
    for name, cls in inspect.getmembers(G, inspect.isclass):
        if issubclass(cls, BaseModel) and cls is not BaseModel and not name.startswith("_"):
            models[name] = cls
    return models


def register_content(folders: List[Path]) -> Registry:
    """
    Load all JSON files in each valid subfolder of the given folders,
    parse them with the corresponding Pydantic model based on folder name,
    and collect them into a registry dict:
      - For models with an `id` field: { model_name: { id: instance, ... } }
      - For others: { model_name: [instance, ...] }
    """
    models = load_models()
    id_models = {name for name, cls in models.items() if 'id' in cls.model_fields}

    registry: Registry = {}
    for name in models:
        registry[name] = {} if name in id_models else []

    for folder in folders:
        if not folder.exists():
            continue
        for sub in sorted(folder.iterdir()):
            if not is_valid_folder(sub):
                continue
            model_name = sub.name
            model_cls = models.get(model_name)
            if model_cls is None:
                # skip unknown model folders
                continue
            for json_file in sorted(sub.glob("*.json")):
                try:
                    data = json.loads(json_file.read_text(encoding="utf-8"))
                    instance = model_cls.model_validate(data)
                except (json.JSONDecodeError, ValidationError) as e:
                    logger.warning("Error parsing %s: %s", json_file, e)
                    continue
                if model_name in id_models:
                    registry[model_name][getattr(instance, 'id')] = instance
                else:
                    registry[model_name].append(instance)

    return registry


def load_catalog(folders: Optional[List[Path]] = None) -> Dict[int, G.Product]:
    """The product catalog, keyed and ordered by product id."""
    registry = register_content(folders if folders is not None else [LOCAL_CONTENT])
    products: Dict[int, G.Product] = registry.get("Product", {})  # type: ignore[assignment]
    return dict(sorted(products.items()))


def main():
    logging.basicConfig(level=logging.INFO)
    registry = register_content([LOCAL_CONTENT])
    for model_name, collection in registry.items():
        print(f"Loaded {len(collection)} {model_name} entries.")


if __name__ == "__main__":
    main()
