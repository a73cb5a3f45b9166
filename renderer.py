import pygame


def fit_rect(screen_size: tuple[int, int], frame_size: tuple[int, int] | None,
             sar: float = 1.0) -> pygame.Rect:
    """Letter-boxed rect of a frame of *frame_size* on a screen of *screen_size*."""
    sw, sh = screen_size
    if not frame_size or not frame_size[0] or not frame_size[1]:
        return pygame.Rect(0, 0, sw, sh)
    vw, vh = frame_size
    scale = min(sw / (vw * sar), sh / vh)
    w, h = int(vw * scale * sar), int(vh * scale)
    return pygame.Rect((sw - w) // 2, (sh - h) // 2, w, h)


def render_frame(screen: pygame.Surface, frame, sar: float) -> pygame.Rect:
    """
    Scale and letter-/pillar-box a raw RGB frame onto `screen`.
    Returns the rect the video occupies; with no frame yet the whole
    screen is black and the full screen rect is returned.
    """
    screen.fill((0, 0, 0))
    if frame is None:
        return screen.get_rect()

    surf = pygame.image.frombuffer(frame, frame.shape[1::-1], "RGB")
    rect = fit_rect(screen.get_size(), surf.get_size(), sar)
    screen.blit(pygame.transform.scale(surf, rect.size), rect.topleft)
    return rect
