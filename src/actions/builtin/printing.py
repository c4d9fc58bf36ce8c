"""
3D printing actions: print settings, model type, file information.
"""

import re
from typing import Any, Dict

from classify.core.types import ContentItem

from .text import has_term, item_text


LAYER_HEIGHT = re.compile(r"layer\s+height[:\s]*(\d+\.?\d*)\s*mm", re.IGNORECASE)
INFILL = re.compile(r"infill[:\s]*(\d+)%", re.IGNORECASE)
PRINT_TIME = re.compile(r"print\s+time[:\s]*(\d+)\s*(hours?|hrs?|minutes?|mins?)", re.IGNORECASE)
MATERIALS = ["PLA", "ABS", "PETG", "TPU", "ASA"]

MODEL_TYPES = {
    "functional": ["bracket", "holder", "organizer", "tool", "repair", "replacement", "mount"],
    "decorative": ["art", "sculpture", "vase", "ornament", "decoration", "display"],
    "miniature": ["miniature", "mini", "tabletop", "d&d", "warhammer", "figure", "character"],
    "toy": ["toy", "game", "puzzle", "fidget", "educational", "children"],
}

FILE_TYPES = [".stl", ".obj", ".3mf", ".ply", ".gcode"]
DOWNLOAD_LINK = re.compile(r"https?://\S+\.(?:stl|obj|3mf|ply|gcode)", re.IGNORECASE)


def extract_settings(item: ContentItem, config: Dict[str, Any]) -> Dict[str, Any]:
    text = item_text(item)
    settings = {}

    match = LAYER_HEIGHT.search(text)
    if match:
        settings["layer_height"] = f"{match.group(1)}mm"

    match = INFILL.search(text)
    if match:
        settings["infill"] = f"{match.group(1)}%"

    # Last listed material wins when several are mentioned
    for material in MATERIALS:
        if has_term(text, material):
            settings["material"] = material

    match = PRINT_TIME.search(text)
    if match:
        settings["print_time"] = f"{match.group(1)} {match.group(2)}"

    return {
        "print_settings": settings,
        "settings_found": len(settings),
        "has_complete_settings": len(settings) >= 3,
    }


def classify_model(item: ContentItem, config: Dict[str, Any]) -> Dict[str, Any]:
    text = f"{item.title or ''} {item_text(item)}".lower()

    best_type = "general"
    best_score = 0
    for model_type, keywords in MODEL_TYPES.items():
        score = sum(1 for keyword in keywords if keyword in text)
        if score > best_score:
            best_type, best_score = model_type, score

    return {
        "model_type": best_type,
        "confidence": min(1.0, best_score / 3) if best_score else 0.3,
        "keywords_matched": best_score,
    }


def extract_file_info(item: ContentItem, config: Dict[str, Any]) -> Dict[str, Any]:
    text = item_text(item)
    files = []
    for file_type in FILE_TYPES:
        pattern = re.compile(rf"\S+{re.escape(file_type)}", re.IGNORECASE)
        files.extend({"name": name, "type": file_type[1:]} for name in pattern.findall(text))

    links = DOWNLOAD_LINK.findall(text)
    return {
        "file_info": {
            "files_mentioned": files,
            "download_links": links,
            "file_count": len(files),
            "has_downloads": bool(links),
        }
    }
