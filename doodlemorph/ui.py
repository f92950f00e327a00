"""
UI Module - Desktop Drawing Application
=======================================
Mouse drawing window with the DoodleMorph toolbar on the keyboard.
Draw a character, select it and morph it; select a character image to
make variants or an animation.
"""

import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Tuple

import cv2
import numpy as np

from doodlemorph.canvas import Canvas, ColorPalette, ShapeType, interpolate_points
from doodlemorph.config import Settings
from doodlemorph.selection import SelectionKind
from doodlemorph.tools import MAX_VARIANTS, ApiClient, StylePresets, Toolbar, ToolResult


class DoodleMorphApp:
    """
    Main application class for doodle drawing with AI generation.

    Left mouse draws strokes, right mouse selects (shift-free: each
    right click toggles a shape in the selection). Generation runs on a
    background thread and the result lands on the canvas when done.
    """

    MAIN_WIDTH = 1280
    MAIN_HEIGHT = 720
    TOP_BAR_HEIGHT = 50

    # UI Colors (BGR)
    UI_BG_COLOR = (30, 30, 30)
    UI_ACCENT_COLOR = (212, 76, 174)
    UI_TEXT_COLOR = (255, 255, 255)
    UI_SUCCESS_COLOR = (0, 200, 0)
    UI_ERROR_COLOR = (0, 0, 255)
    SELECTION_COLOR = (255, 140, 30)

    WINDOW_NAME = "DoodleMorph"

    def __init__(self, settings: Settings, canvas: Optional[Canvas] = None,
                 api_key: Optional[str] = None, document_path: Optional[Path] = None,
                 api: Optional[ApiClient] = None):
        """
        Initialize the application.

        Args:
            settings: Runtime settings (API URL, output directory)
            canvas: Document to edit; a new one when omitted
            api_key: User's own fal.ai key
            document_path: Where the document is saved
            api: Client for the generation API; built from settings when omitted
        """
        self.settings = settings
        self.canvas = canvas or Canvas()
        self.document_path = document_path or (settings.output_dir / "doodle.json")

        self.api = api or ApiClient(settings.api_url, api_key=api_key, timeout=settings.request_timeout)
        self.toolbar = Toolbar(self.canvas, self.api, on_progress=self._on_progress)

        # Application state
        self._running = False
        self._lock = self.canvas.lock
        self._worker: Optional[threading.Thread] = None
        self._status = ""
        self._status_is_error = False

        # Stroke in progress
        self._current_points: List[Tuple[float, float]] = []

        # Style prompt
        self._styles = StylePresets.get_all_names()
        self._current_style_idx = 0
        self._style_prompt = StylePresets.get_preset(self._styles[0])['prompt']

        # Prompts queued for one variants request
        self._variant_prompts: List[str] = []

        # Colors and brush sizes
        self._colors = ['black', 'violet', 'blue', 'green', 'orange', 'red', 'yellow', 'grey']
        self._current_color_idx = 0
        self._brush_sizes = [2, 4, 6, 10, 16]
        self._current_size_idx = 1

        # Performance tracking
        self._fps_counter = 0
        self._fps_time = time.time()
        self._current_fps = 0.0

    # Status
    def _on_progress(self, message: str):
        if message:
            self._set_status(message)

    def _set_status(self, message: str, is_error: bool = False):
        self._status = message
        self._status_is_error = is_error

    def _show_result(self, result: ToolResult):
        text = result.title if not result.description else f"{result.title} {result.description}"
        self._set_status(text, is_error=not result.success)
        if result.data.get('prompt'):
            self._style_prompt = result.data['prompt']

    # Background work
    def _run_in_background(self, action: Callable[[], ToolResult]):
        """Run a toolbar action on a worker thread, one at a time."""
        if self._worker is not None and self._worker.is_alive():
            self._set_status("Generation in progress...")
            return

        def work():
            result = action()
            self._show_result(result)

        self._worker = threading.Thread(target=work, daemon=True)
        self._worker.start()

    def _on_morph(self):
        """Send the selection to the tool that fits it."""
        selection = self.toolbar.selection()

        if selection.kind == SelectionKind.DRAWINGS:
            prompt = self._style_prompt
            self._run_in_background(
                lambda: self.toolbar.doodle_tool.generate(selection.shapes, prompt)
            )
        elif selection.kind == SelectionKind.IMAGE:
            self._on_variants()
        elif selection.kind == SelectionKind.IMAGES:
            self._run_in_background(
                lambda: self.toolbar.animation_tool.create_animation(selection.shapes)
            )
        else:
            self._set_status("Select a drawing or an image first", is_error=True)

    def _queue_variant_prompt(self):
        """Add the current prompt to the next variants request."""
        if len(self._variant_prompts) >= MAX_VARIANTS:
            self._set_status(f"Up to {MAX_VARIANTS} variants at once", is_error=True)
            return
        self._variant_prompts.append(self._style_prompt)
        self._set_status(f"Queued variant {len(self._variant_prompts)}/{MAX_VARIANTS}")

    def _on_variants(self):
        """Send the queued prompts, or the current one, as a variants request."""
        selection = self.toolbar.selection()
        if selection.kind != SelectionKind.IMAGE:
            self._set_status("Select one image for variants", is_error=True)
            return
        prompts = self._variant_prompts or [self._style_prompt]
        self._variant_prompts = []
        self._run_in_background(
            lambda: self.toolbar.image_tool.generate_variants(selection.shapes[0], prompts)
        )

    def _generated_prompt(self) -> str:
        """Prompt a single selected result was generated from."""
        shapes = self.canvas.get_selected_shapes()
        if len(shapes) != 1:
            return ''
        return shapes[0].meta.get('generatedPrompt', '')

    def _on_animate(self):
        selection = self.toolbar.selection()
        if selection.kind == SelectionKind.IMAGE:
            self._run_in_background(
                lambda: self.toolbar.image_tool.generate_animation(selection.shapes[0])
            )
        elif selection.kind == SelectionKind.IMAGES:
            self._run_in_background(
                lambda: self.toolbar.animation_tool.create_animation(selection.shapes)
            )
        else:
            self._set_status("Select an image to animate", is_error=True)

    def _on_enhance(self):
        prompt = self._style_prompt
        self._run_in_background(lambda: self.toolbar.doodle_tool.enhance_prompt(prompt))

    def _on_suggest(self):
        self._run_in_background(self.toolbar.image_tool.suggest_variant_prompt)

    # Mouse
    def _mouse_callback(self, event, x, y, flags, param):
        page_x, page_y = x, y - self.TOP_BAR_HEIGHT
        if page_y < 0:
            return

        if event == cv2.EVENT_LBUTTONDOWN:
            self._current_points = [(page_x, page_y)]
        elif event == cv2.EVENT_MOUSEMOVE and self._current_points and flags & cv2.EVENT_FLAG_LBUTTON:
            self._current_points.extend(interpolate_points(self._current_points[-1], (page_x, page_y)))
        elif event == cv2.EVENT_LBUTTONUP and self._current_points:
            self._end_stroke()
        elif event == cv2.EVENT_RBUTTONDOWN:
            self._toggle_selection(page_x, page_y)

    def _end_stroke(self):
        """Commit the stroke in progress as a draw shape."""
        points = self._current_points
        self._current_points = []

        origin_x = min(p[0] for p in points)
        origin_y = min(p[1] for p in points)
        with self._lock:
            shape_id = self.canvas.create_shape(
                ShapeType.DRAW,
                x=origin_x,
                y=origin_y,
                props={
                    'points': [(px - origin_x, py - origin_y) for px, py in points],
                    'color': self._colors[self._current_color_idx],
                    'size': self._brush_sizes[self._current_size_idx],
                },
            )
            self.canvas.select(shape_id)

    def _toggle_selection(self, x: float, y: float):
        with self._lock:
            shape = self.canvas.shape_at(x, y)
            if shape is None:
                self.canvas.select_none()
                return
            selected = self.canvas.get_selected_shape_ids()
            if shape.id in selected:
                selected.remove(shape.id)
                self.canvas.select(*selected)
            else:
                self.canvas.add_to_selection(shape.id)

    # Drawing
    def _update_fps(self):
        """Update FPS counter."""
        self._fps_counter += 1
        current_time = time.time()
        elapsed = current_time - self._fps_time

        if elapsed >= 1.0:
            self._current_fps = self._fps_counter / elapsed
            self._fps_counter = 0
            self._fps_time = current_time

    def _draw_frame(self) -> np.ndarray:
        page_height = self.MAIN_HEIGHT - self.TOP_BAR_HEIGHT
        with self._lock:
            page = self.canvas.render(self.MAIN_WIDTH, page_height)
            selected = [self.canvas.get_shape_page_bounds(s) for s in self.canvas.get_selected_shapes()]

        for bounds in selected:
            if bounds is None:
                continue
            cv2.rectangle(
                page,
                (int(bounds.min_x) - 2, int(bounds.min_y) - 2),
                (int(bounds.max_x) + 2, int(bounds.max_y) + 2),
                self.SELECTION_COLOR, 1
            )

        # Stroke in progress
        if len(self._current_points) > 1:
            pts = np.array(self._current_points, dtype=np.int32)
            cv2.polylines(
                page, [pts], False,
                ColorPalette.get(self._colors[self._current_color_idx]),
                self._brush_sizes[self._current_size_idx], cv2.LINE_AA
            )

        frame = np.zeros((self.MAIN_HEIGHT, self.MAIN_WIDTH, 3), dtype=np.uint8)
        frame[self.TOP_BAR_HEIGHT:] = page
        return self._draw_ui(frame)

    def _draw_ui(self, frame: np.ndarray) -> np.ndarray:
        """Draw the top bar and instructions."""
        h, w = frame.shape[:2]

        cv2.rectangle(frame, (0, 0), (w, self.TOP_BAR_HEIGHT), self.UI_BG_COLOR, -1)

        cv2.putText(
            frame, f"FPS: {self._current_fps:.0f}",
            (10, 32), cv2.FONT_HERSHEY_SIMPLEX, 0.6,
            self.UI_SUCCESS_COLOR, 2
        )

        # Selection kind
        kind = self.toolbar.selection().kind.value
        cv2.putText(
            frame, f"Sel: {kind}",
            (110, 32), cv2.FONT_HERSHEY_SIMPLEX, 0.6,
            self.UI_TEXT_COLOR, 1
        )

        # Prompt, or the prompt behind a selected result
        generated = self._generated_prompt()
        label, text = ("Generation Prompt", generated) if generated else ("Prompt", self._style_prompt)
        if len(text) <= 30:
            shown = text
        else:
            shown = text[:27] + "..."
        if self._variant_prompts:
            shown += f" [+{len(self._variant_prompts)}]"
        cv2.putText(
            frame, f"{label}: {shown}",
            (270, 32), cv2.FONT_HERSHEY_SIMPLEX, 0.5,
            self.UI_TEXT_COLOR if generated else self.UI_ACCENT_COLOR, 1
        )

        # Color swatches
        for i, name in enumerate(self._colors):
            x = w - 560 + i * 24
            cv2.rectangle(frame, (x, 14), (x + 18, 36), ColorPalette.get(name), -1)
            if i == self._current_color_idx:
                cv2.rectangle(frame, (x - 2, 12), (x + 20, 38), (255, 255, 255), 2)

        if self._status:
            color = self.UI_ERROR_COLOR if self._status_is_error else self.UI_SUCCESS_COLOR
            status = self._status if len(self._status) <= 48 else self._status[:45] + "..."
            cv2.putText(
                frame, status,
                (w - 360, 32), cv2.FONT_HERSHEY_SIMPLEX, 0.5,
                color, 1
            )

        instructions = [
            "[LMB] Draw | [RMB] Select | [A] All | [N] None",
            "[G] Morph | [U] Queue | [V] Variants | [M] Animate | [E] Enhance",
            "[R] Suggest | [S] Style | [1-8] Color | [+/-] Brush",
            "[X] Delete | [C] Clear | [W] Save | [Q] Quit",
        ]
        y_pos = h - 80
        for inst in instructions:
            cv2.putText(
                frame, inst,
                (w - 430, y_pos), cv2.FONT_HERSHEY_SIMPLEX, 0.45,
                (150, 150, 150), 1
            )
            y_pos += 18

        return frame

    # Keyboard
    def _handle_keyboard(self, key: int) -> bool:
        """
        Handle keyboard input.

        Returns:
            False if should quit, True otherwise
        """
        if key == ord('q') or key == 27:  # Q or Escape
            return False

        elif key == ord('a'):
            with self._lock:
                self.canvas.select_all()

        elif key == ord('n'):
            with self._lock:
                self.canvas.select_none()

        elif key == ord('g'):
            self._on_morph()

        elif key == ord('u'):
            self._queue_variant_prompt()

        elif key == ord('v'):
            self._on_variants()

        elif key == ord('m'):
            self._on_animate()

        elif key == ord('e'):
            self._on_enhance()

        elif key == ord('r'):
            self._on_suggest()

        elif key == ord('s'):
            self._current_style_idx = (self._current_style_idx + 1) % len(self._styles)
            preset = StylePresets.get_preset(self._styles[self._current_style_idx])
            self._style_prompt = preset['prompt']
            self._set_status(f"Style: {preset['label']}")

        elif key == ord('x'):
            with self._lock:
                self.canvas.delete_shapes(self.canvas.get_selected_shape_ids())

        elif key == ord('c'):
            with self._lock:
                self.canvas.clear()
            self._set_status("Canvas cleared")

        elif key == ord('w'):
            with self._lock:
                self.canvas.save(self.document_path)
            self._set_status("Document saved")

        elif key == ord('p'):
            self._save_snapshot()

        elif key == ord('+') or key == ord('='):
            self._current_size_idx = min(self._current_size_idx + 1, len(self._brush_sizes) - 1)

        elif key == ord('-'):
            self._current_size_idx = max(self._current_size_idx - 1, 0)

        elif ord('1') <= key <= ord('8'):
            idx = key - ord('1')
            if idx < len(self._colors):
                self._current_color_idx = idx

        return True

    def _save_snapshot(self):
        """Save the current page as a PNG."""
        with self._lock:
            if not self.canvas.has_content():
                self._set_status("Canvas is empty!", is_error=True)
                return
            data = self.canvas.to_image(self.canvas.shapes)
        self.settings.output_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        filename = self.settings.output_dir / f"doodle_{timestamp}.png"
        filename.write_bytes(data)
        print(f"[INFO] Saved: {filename}")
        self._set_status("Snapshot saved")

    def run(self):
        """Run the main application loop."""
        print("\n" + "=" * 60)
        print("  DoodleMorph - Draw a character, morph it with AI")
        print("=" * 60)
        print("\nMouse:")
        print("  Left drag  -> Draw")
        print("  Right click -> Toggle selection")
        print("\nKeyboard:")
        print("  [G] Morph drawing / variants of image")
        print("  [M] Animate image(s)")
        print("  [E] Enhance prompt | [R] Suggest variant prompt")
        print("  [S] Cycle style    | [1-8] Color | [+/-] Brush")
        print("  [U] Queue prompt for variants | [V] Variants of image")
        print("  [A] Select all | [N] Select none | [X] Delete | [C] Clear")
        print("  [W] Save document | [P] Save snapshot | [Q] Quit")
        print(f"\nAPI: {self.settings.api_url}")
        print("=" * 60)

        self._running = True
        cv2.namedWindow(self.WINDOW_NAME, cv2.WINDOW_NORMAL)
        cv2.resizeWindow(self.WINDOW_NAME, self.MAIN_WIDTH, self.MAIN_HEIGHT)
        cv2.setMouseCallback(self.WINDOW_NAME, self._mouse_callback)

        try:
            while self._running:
                frame = self._draw_frame()
                self._update_fps()
                cv2.imshow(self.WINDOW_NAME, frame)

                key = cv2.waitKey(15) & 0xFF
                if not self._handle_keyboard(key):
                    break
        finally:
            self._running = False
            cv2.destroyAllWindows()
            print("\n[INFO] Application closed")


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    import argparse

    from doodlemorph.config import GeneratorBackend, load_settings

    parser = argparse.ArgumentParser(description="DoodleMorph - Draw a character, morph it with AI")
    parser.add_argument('--mock', action='store_true', help='Use mock generator (no API needed)')
    subparsers = parser.add_subparsers(dest='command')

    serve_parser = subparsers.add_parser('serve', help='Run the generation API')
    serve_parser.add_argument('--host', help='Bind address')
    serve_parser.add_argument('--port', type=int, help='Port')
    serve_parser.add_argument('--mock', action='store_true', default=argparse.SUPPRESS,
                              help='Use mock generator (no API needed)')

    draw_parser = subparsers.add_parser('draw', help='Open the drawing window')
    draw_parser.add_argument('--api-url', help='Generation API base URL')
    draw_parser.add_argument('--api-key', help='Your own fal.ai key')
    draw_parser.add_argument('--local', action='store_true', help='Run the API in-process')
    draw_parser.add_argument('--load', type=Path, help='Open a saved document')
    draw_parser.add_argument('--mock', action='store_true', default=argparse.SUPPRESS,
                             help='Use mock generator with the in-process API')

    args = parser.parse_args(argv)
    settings = load_settings()

    if args.mock:
        settings.backend = GeneratorBackend.MOCK

    if args.command == 'serve':
        if args.host:
            settings.host = args.host
        if args.port:
            settings.port = args.port

        if not settings.use_mock and not settings.fal_api_key:
            print("\n[NOTE] FAL_API_KEY not set. Requests must carry their own apiKey.")
            print("[NOTE] Set FAL_API_KEY in your .env file or run with --mock")

        from doodlemorph.server import run
        run(settings)
        return

    # Drawing window is the default
    if getattr(args, 'api_url', None):
        settings.api_url = args.api_url

    api = None
    if getattr(args, 'local', False) or (args.mock and not getattr(args, 'api_url', None)):
        from fastapi.testclient import TestClient
        from doodlemorph.server import create_app

        print("[INFO] Using in-process API")
        api = ApiClient(
            api_key=getattr(args, 'api_key', None),
            session=TestClient(create_app(settings)),
            timeout=settings.request_timeout,
        )

    canvas = None
    document_path = getattr(args, 'load', None)
    if document_path is not None and document_path.exists():
        canvas = Canvas.load(document_path)
        print(f"[INFO] Loaded document: {document_path}")

    app = DoodleMorphApp(
        settings,
        canvas=canvas,
        api_key=getattr(args, 'api_key', None),
        document_path=document_path,
        api=api,
    )
    app.run()


if __name__ == "__main__":
    main()
