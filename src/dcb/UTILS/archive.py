# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.


"""
Tar helpers for build contexts and the final bundle archive.
"""
import os
import posixpath
import tarfile
import threading
from contextlib import contextmanager
from typing import BinaryIO, Iterator, List, Optional, Tuple

# Relative names starting with this prefix are left out of build contexts
GIT_PREFIX = ".git"

CONTEXT_CHUNK_SIZE = 64 * 1024


def walk_tree(root: str, skip_prefix: Optional[str] = None) -> Iterator[Tuple[str, str]]:
    """
    Walks a directory tree in sorted order, each directory before its contents.

    :param root: Directory to walk. The root itself is not yielded.
    :param skip_prefix: Relative names starting with this prefix are skipped, subtree included.
    :return: Iterator of (filesystem path, forward-slash relative name).
    """
    def visit(directory: str, rel: str) -> Iterator[Tuple[str, str]]:
        for name in sorted(os.listdir(directory)):
            path = os.path.join(directory, name)
            arcname = posixpath.join(rel, name) if rel else name
            if skip_prefix and arcname.startswith(skip_prefix):
                continue
            yield path, arcname
            if os.path.isdir(path) and not os.path.islink(path):
                yield from visit(path, arcname)

    yield from visit(root, "")


def write_tree(tar: tarfile.TarFile, root: str, skip_prefix: Optional[str] = None) -> None:
    """
    Adds every entry below root to an open tar file, keeping mode bits.
    """
    for path, arcname in walk_tree(root, skip_prefix):
        tar.add(path, arcname=arcname, recursive=False)


def write_context_tar(context_dir: str, fileobj: BinaryIO) -> None:
    """
    Writes an uncompressed build context tar stream, without the .git subtree.

    :param context_dir: Build context directory.
    :param fileobj: Writable binary stream. It does not need to be seekable.
    """
    with tarfile.open(fileobj=fileobj, mode="w|") as tar:
        write_tree(tar, context_dir, skip_prefix=GIT_PREFIX)


@contextmanager
def stream_build_context(context_dir: str, chunk_size: int = CONTEXT_CHUNK_SIZE):
    """
    Streams a build context as tar chunks without holding it in memory.

    A producer thread writes the tar stream into a pipe while the caller consumes
    the chunks. Leaving the block closes the pipe and joins the producer; an error
    the producer hit is raised once the caller is done.

    :param context_dir: Build context directory.
    :param chunk_size: Size of the chunks read from the pipe.
    :return: Iterator over tar bytes.
    """
    read_fd, write_fd = os.pipe()
    reader = os.fdopen(read_fd, "rb")
    errors: List[BaseException] = []

    def produce():
        try:
            with os.fdopen(write_fd, "wb") as writer:
                write_context_tar(context_dir, writer)
        except BrokenPipeError:
            # Consumer went away before reading everything
            pass
        except (OSError, tarfile.TarError) as e:
            errors.append(e)

    producer = threading.Thread(target=produce, name="build-context", daemon=True)
    producer.start()
    try:
        yield iter(lambda: reader.read(chunk_size), b"")
    finally:
        reader.close()
        producer.join()

    if errors:
        raise errors[0]


def create_tar_gz(source_dir: str, output_path: str) -> None:
    """
    Archives the contents of source_dir into a gzip-compressed tar file.

    Entry names are relative to source_dir and always use forward slashes.
    The source directory itself gets no entry.

    :param source_dir: Directory to archive.
    :param output_path: Path of the .tar.gz file to create.
    """
    with tarfile.open(output_path, "w:gz") as tar:
        write_tree(tar, source_dir)
