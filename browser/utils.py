import re
import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence
from PIL import Image
from bs4 import BeautifulSoup, Tag

logger = logging.getLogger(__name__)

FILENAME_PATTERN = re.compile(r"[\w\-./@\[\]]+\.[A-Za-z0-9]{1,6}\b")
DEFAULT_FILENAME = "code.tsx"

# Words in an instruction that describe the element kind, not its label
_TARGET_NOISE = {"the", "a", "an", "on", "button", "field", "input", "textarea", "link", "icon", "into", "with", "option"}
_FILENAME_ATTRS = ("data-filename", "data-file", "data-path", "title", "aria-label")


def resize_image_if_needed(image_path: Path):
    try:
        with Image.open(image_path) as img:
            if max(img.size) > 1024:
                img.thumbnail((1024, 1024), Image.LANCZOS)
                img.save(image_path)
    except Exception as e:
        logger.warning(f"Could not resize image {image_path}. Error: {e}")


def find_filename(text: Optional[str]) -> Optional[str]:
    """Returns the first filename-looking token in a UI label, e.g. 'login.tsx tab' -> 'login.tsx'."""
    if not text:
        return None
    match = FILENAME_PATTERN.search(text)
    if not match:
        return None
    name = match.group(0).strip("./")
    # Reject plain numbers like "1.5" and domains like "v0.dev"
    if not re.search(r"[A-Za-z_]", name.rsplit(".", 1)[0]) or name.lower().endswith((".dev", ".com", ".app")):
        return None
    return name


def _tokens(text: str) -> List[str]:
    return re.findall(r"[a-z0-9]+", text.lower())


def target_keywords(target: str) -> List[str]:
    return [t for t in _tokens(target) if t not in _TARGET_NOISE]


def resolve_action_target(target: str, labels: Sequence[str]) -> Optional[int]:
    """Index of the label that best matches an instruction target, by keyword overlap.

    A label containing the full keyword phrase wins outright; otherwise the label
    with the most shared keywords is chosen. Ties keep the first (topmost) element.
    """
    keywords = target_keywords(target)
    if not keywords:
        return None
    phrase = " ".join(keywords)
    best_index, best_score = None, 0.0
    for index, label in enumerate(labels):
        label_tokens = target_keywords(label)
        if not label_tokens:
            continue
        if f" {phrase} " in f" {' '.join(label_tokens)} ":
            # Prefer the shortest label containing the whole phrase
            score = len(keywords) + 1 + 1.0 / len(label_tokens)
        else:
            shared = len(set(keywords) & set(label_tokens))
            if shared < max(1, (len(keywords) + 1) // 2):
                continue
            score = shared + 1.0 / len(label_tokens) - 1.0
        if score > best_score:
            best_index, best_score = index, score
    return best_index


def _block_filename(element: Tag) -> Optional[str]:
    for node in [element, *element.parents]:
        if not isinstance(node, Tag) or node.name in ("body", "html", "[document]"):
            break
        for attr in _FILENAME_ATTRS:
            name = find_filename(node.get(attr))
            if name:
                return name
    # A filename label rendered just above the code block
    for previous in element.find_all_previous(string=True, limit=5):
        name = find_filename(previous.strip())
        if name and previous.strip() == name:
            return name
    return None


def scrape_code_blocks(page_content: str) -> Dict[str, str]:
    """Reads every code-bearing element of a rendered page into {filename: source}.

    `pre` elements are preferred; bare `code` elements are only used when the
    page has no `pre` blocks. Elements without a resolvable filename get
    `code.tsx`, `code-2.tsx`, ...; a name already taken gets the next free
    `-N` suffix so no block is overwritten.
    """
    soup = BeautifulSoup(page_content, "html.parser")
    blocks = soup.find_all("pre") or soup.find_all("code")

    files: Dict[str, str] = {}
    for block in blocks:
        text = block.get_text()
        if not text.strip():
            continue
        name = unique_filename(_block_filename(block) or DEFAULT_FILENAME, files)
        files[name] = text
    return files


def unique_filename(name: str, taken) -> str:
    if name not in taken:
        return name
    stem, dot, ext = name.rpartition(".")
    if not dot:
        stem, ext = name, ""
    suffix = 2
    while f"{stem}-{suffix}{dot}{ext}" in taken:
        suffix += 1
    return f"{stem}-{suffix}{dot}{ext}"
