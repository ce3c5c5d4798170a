"""
Example walking through a large file upload step by step.

- start a large file and get a session object back
- upload parts (the session keeps one upload URL between parts)
- finish, or cancel if something goes wrong
- list unfinished large files left behind by earlier runs

Set B2_APPLICATION_KEY_ID, B2_APPLICATION_KEY and B2_BUCKET_ID (a .env file
works too).
"""

import asyncio
import os

from dotenv import load_dotenv

from b2client import AsyncB2Client, B2Client, B2Error

load_dotenv()

bucket_id = os.getenv("B2_BUCKET_ID")
assert bucket_id, "Set B2_BUCKET_ID"

PART_SIZE = 5 * 1000 * 1000


def sync_example() -> None:
    print("=== Sync large file upload ===\n")
    with B2Client() as client:
        upload = client.large_files.start(
            bucket_id,
            "examples/movie.mp4",
            content_type="video/mp4",
            file_info={"src_last_modified_millis": "1700000000000"},
        )
        print(f"Started {upload.file_id}")
        try:
            for number in (1, 2):
                part = upload.upload_part(number, bytes(PART_SIZE))
                print(f"  part {part.part_number}: sha1 {part.content_sha1}")
            file = upload.finish()
        except B2Error:
            upload.cancel()
            raise
        print(f"Finished {file.file_name} ({file.size} bytes)\n")


async def async_example() -> None:
    print("=== Async upload_large_file + cleanup ===\n")
    async with AsyncB2Client() as client:
        with open(__file__, "rb") as fh:
            file = await client.large_files.upload_large_file(
                fh, bucket_id, "examples/source.py", part_size=PART_SIZE
            )
        print(f"Uploaded {file.file_name} as {file.file_id}")

        async for unfinished in client.large_files.iter_unfinished_large_files(
            bucket_id, name_prefix="examples/"
        ):
            print(f"Canceling leftover {unfinished.file_name} ({unfinished.file_id})")
            await client.large_files.cancel_large_file(unfinished.file_id)


if __name__ == "__main__":
    sync_example()
    asyncio.run(async_example())
