"""
Canvas Module - Shape Document
==============================
Holds the shapes and assets of a drawing page, tracks the selection and
exports shapes to raster images.
Supports strokes, geometric shapes, arrows, text, images and videos.
"""

import functools
import json
import math
import threading
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field, asdict
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

import cv2
import numpy as np

from doodlemorph.media import fetch_bytes, video_first_frame


class ShapeType(Enum):
    """Kinds of shapes a page can hold."""
    DRAW = "draw"
    GEO = "geo"
    ARROW = "arrow"
    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"


class ColorPalette:
    """Named drawing colors (BGR)."""

    BLACK = (30, 29, 29)
    GREY = (150, 150, 150)
    LIGHT_VIOLET = (248, 166, 224)
    VIOLET = (212, 76, 174)
    BLUE = (218, 104, 68)
    LIGHT_BLUE = (249, 167, 78)
    YELLOW = (3, 172, 241)
    ORANGE = (25, 114, 225)
    GREEN = (63, 147, 9)
    LIGHT_GREEN = (75, 182, 76)
    LIGHT_RED = (126, 141, 248)
    RED = (45, 45, 224)
    WHITE = (255, 255, 255)

    NAMES = {
        'black': BLACK,
        'grey': GREY,
        'light-violet': LIGHT_VIOLET,
        'violet': VIOLET,
        'blue': BLUE,
        'light-blue': LIGHT_BLUE,
        'yellow': YELLOW,
        'orange': ORANGE,
        'green': GREEN,
        'light-green': LIGHT_GREEN,
        'light-red': LIGHT_RED,
        'red': RED,
        'white': WHITE,
    }

    @classmethod
    def get(cls, name: str) -> Tuple[int, int, int]:
        """Get a color by name, black when unknown."""
        return cls.NAMES.get(name, cls.BLACK)

    @classmethod
    def get_all_names(cls) -> List[str]:
        """Get all palette color names."""
        return list(cls.NAMES.keys())


def create_shape_id() -> str:
    return f"shape:{uuid.uuid4().hex}"


def create_asset_id() -> str:
    return f"asset:{uuid.uuid4().hex}"


@dataclass
class Bounds:
    """Axis-aligned box in page coordinates."""
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def x(self) -> float:
        return self.min_x

    @property
    def y(self) -> float:
        return self.min_y

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def mid_x(self) -> float:
        return self.min_x + self.width / 2

    @property
    def mid_y(self) -> float:
        return self.min_y + self.height / 2

    def translate(self, dx: float, dy: float) -> "Bounds":
        return Bounds(self.min_x + dx, self.min_y + dy, self.max_x + dx, self.max_y + dy)

    def contains(self, x: float, y: float, margin: float = 0) -> bool:
        return (
            self.min_x - margin <= x <= self.max_x + margin and
            self.min_y - margin <= y <= self.max_y + margin
        )

    @classmethod
    def union(cls, bounds: Iterable["Bounds"]) -> Optional["Bounds"]:
        """Combine many boxes; None when there are none."""
        bounds = list(bounds)
        if not bounds:
            return None
        return cls(
            min(b.min_x for b in bounds),
            min(b.min_y for b in bounds),
            max(b.max_x for b in bounds),
            max(b.max_y for b in bounds),
        )


@dataclass
class Asset:
    """
    Media referenced by image and video shapes.

    Attributes:
        id: asset:<hex> identifier
        type: 'image' or 'video'
        name: Human readable name
        src: data URL, http(s) URL or asset: reference
        w: Intrinsic width in pixels
        h: Intrinsic height in pixels
        mime_type: MIME type of src
        is_animated: Whether the media animates
    """
    id: str
    type: str
    name: str
    src: str
    w: float
    h: float
    mime_type: str
    is_animated: bool = False
    meta: dict = field(default_factory=dict)


@dataclass
class Shape:
    """
    A single shape on the page.

    Attributes:
        id: shape:<hex> identifier
        type: Kind of shape
        x: Horizontal offset (page coordinates, or relative to parent)
        y: Vertical offset (page coordinates, or relative to parent)
        props: Type specific properties
        meta: Free-form metadata
        opacity: 0-1 opacity
        is_locked: Locked shapes cannot be selected
        parent_id: Owning shape for nested shapes
    """
    id: str
    type: ShapeType
    x: float = 0.0
    y: float = 0.0
    props: dict = field(default_factory=dict)
    meta: dict = field(default_factory=dict)
    opacity: float = 1.0
    is_locked: bool = False
    parent_id: Optional[str] = None

    @property
    def asset_id(self) -> Optional[str]:
        return self.props.get('asset_id')

    def to_dict(self) -> dict:
        data = asdict(self)
        data['type'] = self.type.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Shape":
        data = dict(data)
        data['type'] = ShapeType(data['type'])
        return cls(**data)


# Default props per shape type
DEFAULT_PROPS = {
    ShapeType.DRAW: {'points': [], 'color': 'black', 'size': 4},
    ShapeType.ARROW: {'points': [], 'color': 'black', 'size': 4},
    ShapeType.GEO: {'geo': 'rectangle', 'w': 100, 'h': 100, 'color': 'black',
                    'fill': 'none', 'dash': 'draw', 'size': 'm'},
    ShapeType.TEXT: {'text': '', 'color': 'black', 'font_size': 24},
    ShapeType.IMAGE: {'asset_id': None, 'w': 100, 'h': 100},
    ShapeType.VIDEO: {'asset_id': None, 'w': 100, 'h': 100},
}

GEO_SIZES = {'s': 2, 'm': 3.5, 'l': 5, 'xl': 10}


def _synchronized(method):
    """Run a Canvas method while holding the canvas lock."""
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)
    return wrapper


class Canvas:
    """
    Shape document for a single page.

    Keeps shapes in creation order (which is also paint order), the asset
    store and the current selection. Public methods hold a reentrant
    lock, so the drawing window and a generation worker can share a page.
    """

    def __init__(self):
        """Initialize an empty page."""
        self._shapes: "OrderedDict[str, Shape]" = OrderedDict()
        self._assets: Dict[str, Asset] = {}
        self._selected_ids: List[str] = []
        self._decoded: Dict[Tuple[str, str], Optional[np.ndarray]] = {}
        self._lock = threading.RLock()

    @property
    def lock(self) -> threading.RLock:
        """Lock held by every public method; take it to group several calls."""
        return self._lock

    # Shapes
    @_synchronized
    def create_shape(
        self,
        shape_type: ShapeType,
        x: float = 0.0,
        y: float = 0.0,
        props: Optional[dict] = None,
        meta: Optional[dict] = None,
        opacity: float = 1.0,
        is_locked: bool = False,
        parent_id: Optional[str] = None,
        shape_id: Optional[str] = None
    ) -> str:
        """
        Create a shape and add it to the page.

        Args:
            shape_type: Kind of shape
            x: Horizontal position
            y: Vertical position
            props: Type specific properties, merged over the defaults
            meta: Free-form metadata
            opacity: Opacity (0-1)
            is_locked: Whether the shape is locked
            parent_id: Parent shape id for nested shapes
            shape_id: Explicit id (generated when omitted)

        Returns:
            The new shape id
        """
        shape_id = shape_id or create_shape_id()
        if shape_id in self._shapes:
            raise ValueError(f"Shape already exists: {shape_id}")
        if parent_id is not None and parent_id not in self._shapes:
            raise ValueError(f"Parent shape not found: {parent_id}")

        merged = dict(DEFAULT_PROPS[shape_type])
        merged.update(props or {})
        if 'points' in merged:
            merged['points'] = [tuple(p) for p in merged['points']]

        self._shapes[shape_id] = Shape(
            id=shape_id,
            type=shape_type,
            x=x,
            y=y,
            props=merged,
            meta=dict(meta or {}),
            opacity=max(0.0, min(opacity, 1.0)),
            is_locked=is_locked,
            parent_id=parent_id,
        )
        return shape_id

    @_synchronized
    def get_shape(self, shape_id: Optional[str]) -> Optional[Shape]:
        if shape_id is None:
            return None
        return self._shapes.get(shape_id)

    @_synchronized
    def get_children(self, shape_id: str) -> List[Shape]:
        return [s for s in self._shapes.values() if s.parent_id == shape_id]

    @_synchronized
    def delete_shape(self, shape_id: str):
        """Delete a shape and its children. Unknown ids are ignored."""
        if shape_id not in self._shapes:
            return

        for child in self.get_children(shape_id):
            self.delete_shape(child.id)

        del self._shapes[shape_id]
        if shape_id in self._selected_ids:
            self._selected_ids.remove(shape_id)

    @_synchronized
    def delete_shapes(self, shape_ids: Iterable[str]):
        for shape_id in list(shape_ids):
            self.delete_shape(shape_id)

    @property
    @_synchronized
    def shapes(self) -> List[Shape]:
        return list(self._shapes.values())

    @_synchronized
    def get_shape_count(self) -> int:
        return len(self._shapes)

    @_synchronized
    def has_content(self) -> bool:
        return len(self._shapes) > 0

    @_synchronized
    def clear(self):
        """Remove every shape, asset and selection."""
        self._shapes.clear()
        self._assets.clear()
        self._selected_ids.clear()
        self._decoded.clear()

    # Assets
    @_synchronized
    def create_assets(self, assets: Iterable[Asset]):
        for asset in assets:
            self._assets[asset.id] = asset

    @_synchronized
    def get_asset(self, asset_id: Optional[str]) -> Optional[Asset]:
        if asset_id is None:
            return None
        return self._assets.get(asset_id)

    @property
    @_synchronized
    def assets(self) -> List[Asset]:
        return list(self._assets.values())

    # Selection
    @_synchronized
    def select(self, *shape_ids: str):
        """Replace the selection, keeping the given order."""
        self._selected_ids = []
        for shape_id in shape_ids:
            shape = self._shapes.get(shape_id)
            if shape is None:
                raise ValueError(f"Shape not found: {shape_id}")
            if shape_id not in self._selected_ids:
                self._selected_ids.append(shape_id)

    @_synchronized
    def add_to_selection(self, shape_id: str):
        if shape_id not in self._shapes:
            raise ValueError(f"Shape not found: {shape_id}")
        if shape_id not in self._selected_ids:
            self._selected_ids.append(shape_id)

    @_synchronized
    def select_all(self):
        """Select every unlocked top-level shape."""
        self._selected_ids = [
            s.id for s in self._shapes.values()
            if s.parent_id is None and not s.is_locked
        ]

    @_synchronized
    def select_none(self):
        self._selected_ids = []

    @_synchronized
    def get_selected_shape_ids(self) -> List[str]:
        return list(self._selected_ids)

    @_synchronized
    def get_selected_shapes(self) -> List[Shape]:
        return [self._shapes[i] for i in self._selected_ids if i in self._shapes]

    # Geometry
    def _shape_local_bounds(self, shape: Shape) -> Bounds:
        props = shape.props

        if shape.type in (ShapeType.DRAW, ShapeType.ARROW):
            points = props.get('points') or [(0, 0)]
            half = props.get('size', 4) / 2
            xs = [p[0] for p in points]
            ys = [p[1] for p in points]
            return Bounds(min(xs) - half, min(ys) - half, max(xs) + half, max(ys) + half)

        if shape.type == ShapeType.TEXT:
            font_size = props.get('font_size', 24)
            lines = str(props.get('text', '')).split('\n') or ['']
            w = props.get('w') or max(len(line) for line in lines) * font_size * 0.6
            h = props.get('h') or len(lines) * font_size * 1.5
            return Bounds(0, 0, max(w, 1), max(h, 1))

        return Bounds(0, 0, props.get('w', 0), props.get('h', 0))

    @_synchronized
    def get_shape_page_position(self, shape: Shape) -> Tuple[float, float]:
        """Page coordinates of a shape's origin."""
        x, y = shape.x, shape.y
        parent = self.get_shape(shape.parent_id)
        while parent is not None:
            x += parent.x
            y += parent.y
            parent = self.get_shape(parent.parent_id)
        return x, y

    @_synchronized
    def get_shape_page_bounds(self, shape) -> Optional[Bounds]:
        """
        Page bounds of a shape.

        Args:
            shape: Shape or shape id

        Returns:
            Bounds, or None if the shape is not on the page
        """
        shape_id = shape if isinstance(shape, str) else shape.id
        current = self._shapes.get(shape_id)
        if current is None:
            return None
        px, py = self.get_shape_page_position(current)
        return self._shape_local_bounds(current).translate(px, py)

    @_synchronized
    def get_shapes_page_bounds(self, shapes: Iterable) -> Optional[Bounds]:
        """Combined page bounds of several shapes."""
        bounds = [self.get_shape_page_bounds(s) for s in shapes]
        return Bounds.union(b for b in bounds if b is not None)

    @_synchronized
    def get_selection_page_bounds(self) -> Optional[Bounds]:
        return self.get_shapes_page_bounds(self.get_selected_shapes())

    @_synchronized
    def shape_at(self, x: float, y: float, margin: float = 4) -> Optional[Shape]:
        """Top-most unlocked top-level shape under a page point."""
        for shape in reversed(self.shapes):
            if shape.parent_id is not None or shape.is_locked:
                continue
            bounds = self.get_shape_page_bounds(shape)
            if bounds is not None and bounds.contains(x, y, margin):
                return shape
        return None

    # Rendering
    def _with_descendants(self, shapes: Iterable[Shape]) -> List[Shape]:
        wanted = set()
        stack = [s.id for s in shapes]
        while stack:
            shape_id = stack.pop()
            if shape_id in wanted:
                continue
            wanted.add(shape_id)
            stack.extend(c.id for c in self.get_children(shape_id))
        # Paint in document order
        return [s for s in self._shapes.values() if s.id in wanted]

    def _render_shapes(
        self,
        shapes: List[Shape],
        origin: Tuple[float, float],
        size: Tuple[int, int],
        scale: float,
        background: bool
    ) -> np.ndarray:
        """
        Paint shapes onto a fresh BGRA image.

        Args:
            shapes: Shapes to paint, in paint order
            origin: Page point mapped to pixel (0, 0)
            size: (width, height) of the output in pixels
            scale: Page units to pixels
            background: White opaque background instead of transparent

        Returns:
            BGRA image
        """
        width, height = size
        image = np.zeros((height, width, 4), dtype=np.uint8)
        if background:
            image[:] = (255, 255, 255, 255)

        for shape in shapes:
            px, py = self.get_shape_page_position(shape)
            ox = (px - origin[0]) * scale
            oy = (py - origin[1]) * scale

            if shape.opacity >= 1.0:
                self._paint_shape(image, shape, ox, oy, scale)
            else:
                layer = image.copy()
                self._paint_shape(layer, shape, ox, oy, scale)
                image = cv2.addWeighted(layer, shape.opacity, image, 1 - shape.opacity, 0)

        return image

    def _paint_shape(self, image: np.ndarray, shape: Shape, ox: float, oy: float, scale: float):
        props = shape.props
        color = (*ColorPalette.get(props.get('color', 'black')), 255)

        if shape.type in (ShapeType.DRAW, ShapeType.ARROW):
            points = [
                (int(round(ox + x * scale)), int(round(oy + y * scale)))
                for x, y in props.get('points', [])
            ]
            thickness = max(1, int(round(props.get('size', 4) * scale)))
            if not points:
                return
            if shape.type == ShapeType.ARROW and len(points) >= 2:
                cv2.arrowedLine(image, points[0], points[-1], color, thickness, cv2.LINE_AA, tipLength=0.15)
                return
            if len(points) < 2:
                # Single point - draw dot
                cv2.circle(image, points[0], max(1, thickness // 2), color, -1, cv2.LINE_AA)
                return
            for p1, p2 in zip(points, points[1:]):
                cv2.line(image, p1, p2, color, thickness, cv2.LINE_AA)
                cv2.circle(image, p2, thickness // 2, color, -1, cv2.LINE_AA)

        elif shape.type == ShapeType.GEO:
            x1, y1 = int(round(ox)), int(round(oy))
            x2 = int(round(ox + props.get('w', 0) * scale))
            y2 = int(round(oy + props.get('h', 0) * scale))
            thickness = max(1, int(round(GEO_SIZES.get(props.get('size'), 3.5) * scale)))
            self._paint_geo(image, props, (x1, y1, x2, y2), color, thickness)

        elif shape.type == ShapeType.TEXT:
            font_size = props.get('font_size', 24) * scale
            font_scale = font_size / 30
            line_height = int(round(font_size * 1.5))
            for i, line in enumerate(str(props.get('text', '')).split('\n')):
                baseline = int(round(oy + font_size + i * line_height))
                cv2.putText(
                    image, line, (int(round(ox)), baseline),
                    cv2.FONT_HERSHEY_SIMPLEX, font_scale, color,
                    max(1, int(round(font_scale * 2))), cv2.LINE_AA
                )

        elif shape.type in (ShapeType.IMAGE, ShapeType.VIDEO):
            w = max(1, int(round(props.get('w', 0) * scale)))
            h = max(1, int(round(props.get('h', 0) * scale)))
            media = self._decode_asset(self.get_asset(shape.asset_id))
            if media is None:
                self._paint_missing_media(image, shape.type, int(round(ox)), int(round(oy)), w, h)
            else:
                media = cv2.resize(media, (w, h), interpolation=cv2.INTER_AREA)
                _composite(image, media, int(round(ox)), int(round(oy)))

    def _paint_geo(self, image: np.ndarray, props: dict, box: Tuple[int, int, int, int],
                   color: Tuple[int, ...], thickness: int):
        x1, y1, x2, y2 = box
        ellipse = props.get('geo') == 'ellipse'
        center = ((x1 + x2) // 2, (y1 + y2) // 2)
        axes = (max(1, (x2 - x1) // 2), max(1, (y2 - y1) // 2))

        fill = props.get('fill', 'none')
        if fill in ('semi', 'solid', 'fill'):
            if fill == 'semi':
                fill_color = tuple(int(c + (255 - c) * 0.7) for c in color[:3]) + (255,)
            else:
                fill_color = color
            if ellipse:
                cv2.ellipse(image, center, axes, 0, 0, 360, fill_color, -1, cv2.LINE_AA)
            else:
                cv2.rectangle(image, (x1, y1), (x2, y2), fill_color, -1)

        if ellipse:
            cv2.ellipse(image, center, axes, 0, 0, 360, color, thickness, cv2.LINE_AA)
        elif props.get('dash') in ('dashed', 'dotted'):
            corners = [(x1, y1), (x2, y1), (x2, y2), (x1, y2), (x1, y1)]
            dash = max(4, thickness * (4 if props.get('dash') == 'dashed' else 1))
            for p1, p2 in zip(corners, corners[1:]):
                _dashed_line(image, p1, p2, color, thickness, dash)
        else:
            cv2.rectangle(image, (x1, y1), (x2, y2), color, thickness, cv2.LINE_AA)

    def _paint_missing_media(self, image: np.ndarray, shape_type: ShapeType,
                             x: int, y: int, w: int, h: int):
        """Grey stand-in for media that cannot be decoded."""
        cv2.rectangle(image, (x, y), (x + w, y + h), (220, 220, 220, 255), -1)
        cv2.rectangle(image, (x, y), (x + w, y + h), (150, 150, 150, 255), 1)
        if shape_type == ShapeType.VIDEO:
            cx, cy, r = x + w // 2, y + h // 2, max(4, min(w, h) // 6)
            triangle = np.array([[cx - r // 2, cy - r], [cx - r // 2, cy + r], [cx + r, cy]], dtype=np.int32)
            cv2.fillPoly(image, [triangle], (120, 120, 120, 255))

    @_synchronized
    def resolve_asset(self, asset: Optional[Asset]) -> Optional[Asset]:
        """
        Follow asset: references to the asset holding the media.

        Returns:
            The final asset, or None for a missing target or a cycle
        """
        seen = set()
        while asset is not None and asset.src.startswith('asset:'):
            if asset.id in seen:
                return None
            seen.add(asset.id)
            asset = self._assets.get(asset.src)
        return asset

    @_synchronized
    def get_asset_image(self, asset_id: Optional[str]) -> Optional[np.ndarray]:
        """Decoded BGRA pixels of an asset, or None if it cannot be read."""
        return self._decode_asset(self.get_asset(asset_id))

    def _decode_asset(self, asset: Optional[Asset]) -> Optional[np.ndarray]:
        """Decode an asset into a BGRA array, caching by source."""
        asset = self.resolve_asset(asset)
        if asset is None or not asset.src:
            return None

        key = (asset.id, asset.src)
        if key not in self._decoded:
            self._decoded[key] = self._load_media(asset)
        return self._decoded[key]

    def _load_media(self, asset: Asset) -> Optional[np.ndarray]:
        try:
            data, _ = fetch_bytes(asset.src)
        except (OSError, RuntimeError, ValueError) as e:
            print(f"[WARNING] Could not load asset {asset.id}: {e}")
            return None

        if asset.type == 'video':
            frame = video_first_frame(data)
        else:
            frame = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_UNCHANGED)

        if frame is None:
            return None
        if frame.ndim == 2:
            return cv2.cvtColor(frame, cv2.COLOR_GRAY2BGRA)
        if frame.shape[2] == 3:
            return cv2.cvtColor(frame, cv2.COLOR_BGR2BGRA)
        return frame

    @_synchronized
    def to_image(
        self,
        shapes: List[Shape],
        scale: float = 1.0,
        background: bool = True,
        format: str = 'png',
        padding: int = 16
    ) -> bytes:
        """
        Export shapes (with their children) to an encoded image.

        Args:
            shapes: Shapes to export
            scale: Page units to pixels
            background: Paint a white background
            format: 'png' or 'jpeg'
            padding: Pixels of margin around the shapes

        Returns:
            Encoded image bytes
        """
        if not shapes:
            raise ValueError("No shapes to export")

        bounds = self.get_shapes_page_bounds(shapes)
        if bounds is None:
            raise ValueError("Could not get bounds of shapes")

        width = max(1, int(math.ceil(bounds.width * scale)) + 2 * padding)
        height = max(1, int(math.ceil(bounds.height * scale)) + 2 * padding)
        origin = (bounds.min_x - padding / scale, bounds.min_y - padding / scale)

        image = self._render_shapes(
            self._with_descendants(shapes), origin, (width, height), scale, background
        )

        if format.lower() in ('jpg', 'jpeg'):
            ok, encoded = cv2.imencode('.jpg', cv2.cvtColor(image, cv2.COLOR_BGRA2BGR))
        elif format.lower() == 'png':
            ok, encoded = cv2.imencode('.png', image)
        else:
            raise ValueError(f"Unsupported export format: {format}")

        if not ok:
            raise RuntimeError("Image encoding failed")
        return encoded.tobytes()

    @_synchronized
    def render(
        self,
        width: int,
        height: int,
        offset: Tuple[float, float] = (0.0, 0.0),
        scale: float = 1.0
    ) -> np.ndarray:
        """
        Render the visible part of the page as a BGR image.

        Args:
            width: View width in pixels
            height: View height in pixels
            offset: Page point at the top-left corner of the view
            scale: Zoom factor

        Returns:
            BGR image
        """
        image = self._render_shapes(self.shapes, offset, (width, height), scale, background=True)
        return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)

    # Persistence
    @_synchronized
    def to_dict(self) -> dict:
        return {
            'shapes': [s.to_dict() for s in self._shapes.values()],
            'assets': [asdict(a) for a in self._assets.values()],
        }

    @_synchronized
    def save(self, path: Path):
        """Write the document to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.to_dict()), encoding='utf-8')
        print(f"[INFO] Saved document: {path}")

    @classmethod
    def from_dict(cls, data: dict) -> "Canvas":
        canvas = cls()
        canvas.create_assets(Asset(**a) for a in data.get('assets', []))
        for shape_data in data.get('shapes', []):
            shape = Shape.from_dict(shape_data)
            if 'points' in shape.props:
                shape.props['points'] = [tuple(p) for p in shape.props['points']]
            canvas._shapes[shape.id] = shape
        return canvas

    @classmethod
    def load(cls, path: Path) -> "Canvas":
        """Read a document written by save()."""
        data = json.loads(Path(path).read_text(encoding='utf-8'))
        return cls.from_dict(data)


def _dashed_line(image: np.ndarray, p1: Tuple[int, int], p2: Tuple[int, int],
                 color: Tuple[int, ...], thickness: int, dash: int):
    x1, y1 = p1
    x2, y2 = p2
    length = math.hypot(x2 - x1, y2 - y1)
    if length < 1:
        return
    steps = int(length // dash)
    for i in range(0, steps + 1, 2):
        t1 = i * dash / length
        t2 = min((i + 1) * dash / length, 1.0)
        a = (int(x1 + (x2 - x1) * t1), int(y1 + (y2 - y1) * t1))
        b = (int(x1 + (x2 - x1) * t2), int(y1 + (y2 - y1) * t2))
        cv2.line(image, a, b, color, thickness, cv2.LINE_AA)


def _composite(image: np.ndarray, overlay: np.ndarray, x: int, y: int):
    """Alpha-blend a BGRA overlay onto a BGRA image at (x, y), clipped."""
    h, w = overlay.shape[:2]
    ih, iw = image.shape[:2]

    x1, y1 = max(x, 0), max(y, 0)
    x2, y2 = min(x + w, iw), min(y + h, ih)
    if x1 >= x2 or y1 >= y2:
        return

    src = overlay[y1 - y:y2 - y, x1 - x:x2 - x].astype(np.float32)
    dst = image[y1:y2, x1:x2].astype(np.float32)

    alpha = src[:, :, 3:4] / 255.0
    dst[:, :, :3] = src[:, :, :3] * alpha + dst[:, :, :3] * (1 - alpha)
    dst[:, :, 3:4] = np.maximum(dst[:, :, 3:4], src[:, :, 3:4])
    image[y1:y2, x1:x2] = dst.astype(np.uint8)


def interpolate_points(
    p1: Tuple[float, float],
    p2: Tuple[float, float],
    spacing: float = 2.0
) -> List[Tuple[float, float]]:
    """
    Interpolate points between two positions for smooth strokes.

    Args:
        p1: Start point
        p2: End point
        spacing: Distance between interpolated points

    Returns:
        Points after p1 up to and including p2
    """
    x1, y1 = p1
    x2, y2 = p2

    distance = math.hypot(x2 - x1, y2 - y1)
    if distance < 1:
        return [p2]

    num_points = max(int(distance / spacing), 1)
    return [
        (x1 + (x2 - x1) * i / num_points, y1 + (y2 - y1) * i / num_points)
        for i in range(1, num_points + 1)
    ]
