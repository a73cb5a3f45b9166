#!/usr/bin/env python3
"""
main.py – start the lecture player.

    python main.py --course <course id> [--video <video id>] --email me@example.com
    python main.py --dir lectures/            # local files, no login

With a course the user logs in first (password from --password, the
LMS_PASSWORD environment variable, or a prompt).  When the session expires
or the user logs out, the player asks for the login again.
"""
import argparse
import getpass
import logging
import os
import sys

import pygame

import config
import web_remote
from api_client import LmsClient
from app import EXIT_LOGIN, LectureViewer
from auth import AuthSession
from course_playlist import CoursePlaylist
from errors import ApiError
from events import EventManager
from logger_config import setup_logger
from scheduler import TimerScheduler
from session import SessionTracker

log = logging.getLogger("lecture_player.main")


def parse_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Protected lecture player")
    src = p.add_mutually_exclusive_group()
    src.add_argument("--course", help="course id to play from the LMS")
    src.add_argument("--dir", default=None, help=f"local lecture folder (default {config.LECTURES_PATH})")
    p.add_argument("--video", help="lecture id to start with")
    p.add_argument("--email", default=os.getenv("LMS_EMAIL"))
    p.add_argument("--password", default=None)
    p.add_argument("--api", default=config.API_BASE_URL, help="LMS API base URL")
    p.add_argument("--watermark", default=None, help="watermark text for local playback")
    p.add_argument("--fullscreen", action="store_true")
    p.add_argument("--web-port", type=int, default=config.WEB_PORT)
    p.add_argument("--no-web", action="store_true", help="do not start the web remote")
    return p.parse_args(argv)


def _login(auth: AuthSession, email: str | None, password: str | None) -> bool:
    for _ in range(3):
        email = email or input("Email: ").strip()
        password = password or os.getenv("LMS_PASSWORD") or getpass.getpass("Password: ")
        try:
            auth.login(email, password)
            return True
        except ApiError as e:
            print(f"Login failed: {e}")
            password = None
    return False


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logger()
    if args.fullscreen:
        config.FULLSCREEN = True

    scheduler = TimerScheduler()
    events    = EventManager()
    tracker   = SessionTracker(scheduler, events)
    client    = LmsClient(base_url=args.api)
    auth      = AuthSession(client, tracker, events)

    try:
        if args.course:
            if not _login(auth, args.email, args.password):
                return 1
            playlist = CoursePlaylist.from_api(client, args.course)
            label = None
        else:
            playlist = CoursePlaylist.from_directory(args.dir)
            label = args.watermark or getpass.getuser()
            auth = None

        if not playlist.lectures:
            print("No lectures found.")
            return 1

        viewer = LectureViewer(playlist, scheduler, events, auth,
                               start_lecture=args.video, label=label)
        if not args.no_web:
            web_remote.start(viewer, args.web_port)

        while viewer.run() == EXIT_LOGIN and auth is not None:
            print("Your session has ended. Please log in again.")
            if not _login(auth, args.email, None):
                break
            viewer.relabel()
    except ApiError as e:
        log.error("LMS request failed: %s", e)
        return 1
    finally:
        if auth is not None:
            auth.logout()
        client.close()
        pygame.quit()
    return 0


if __name__ == "__main__":
    sys.exit(main())
