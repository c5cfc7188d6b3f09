from __future__ import annotations

import random

from mongoengine.errors import NotUniqueError

from vidnet.connections.mongo import init_mongo, close_mongo
from vidnet.models.account import Account
from vidnet.models.subscription import Subscription
from vidnet.models.video import Video
from vidnet.services.auth import hash_password
from vidnet.utils.config import settings


def _ensure_accounts() -> list[Account]:
    accounts: list[Account] = []
    fixtures = [
        ("Alice Example", "alice", "alice@example.com", "Secret123!"),
        ("Bob Example", "bob", "bob@example.com", "Secret123!"),
        ("Carol Example", "carol", "carol@example.com", "Secret123!"),
        ("Dave Example", "dave", "dave@example.com", "Secret123!"),
        ("Erin Example", "erin", "erin@example.com", "Secret123!"),
    ]
    for full_name, username, email, pwd in fixtures:
        account = Account.objects(username=username).first()
        if not account:
            account = Account(
                full_name=full_name,
                username=username,
                email=email,
                password=hash_password(pwd),
                avatar=f"https://picsum.photos/seed/{username}/200",
            ).save()
        accounts.append(account)
    return accounts


def _ensure_videos(accounts: list[Account]) -> list[Video]:
    videos: list[Video] = []
    for account in accounts:
        for i in range(1, 4):
            title = f"{account.full_name} video {i}"
            video = Video.objects(owner=account.id, title=title).first()
            if not video:
                video = Video(
                    title=title,
                    description=f"Demo upload number {i} by {account.username}",
                    video_file=f"https://example.com/media/{account.username}/{i}.mp4",
                    thumbnail=f"https://example.com/media/{account.username}/{i}.jpg",
                    duration=float(random.randint(30, 900)),
                    is_published=i != 3,
                    owner=account.id,
                ).save()
            videos.append(video)
    return videos


def _ensure_subscriptions(accounts: list[Account]) -> int:
    created = 0
    # Everyone follows alice; alice follows bob back; the rest is random
    alice, bob = accounts[0], accounts[1]
    edges = {(a.id, alice.id) for a in accounts[1:]}
    edges.add((alice.id, bob.id))
    for subscriber in accounts[1:]:
        for channel in random.sample(accounts, k=2):
            if channel.id != subscriber.id:
                edges.add((subscriber.id, channel.id))

    for subscriber_id, channel_id in edges:
        try:
            Subscription(subscriber=subscriber_id, channel=channel_id).save()
            created += 1
        except NotUniqueError:
            continue
    return created


def main() -> None:
    init_mongo(settings)
    try:
        accounts = _ensure_accounts()
        videos = _ensure_videos(accounts)
        created = _ensure_subscriptions(accounts)
        print(f"Seeded {len(accounts)} accounts, {len(videos)} videos, {created} new subscriptions")
    finally:
        close_mongo()


if __name__ == "__main__":
    main()
