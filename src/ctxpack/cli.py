"""Command-line interface for ctxpack."""

from __future__ import annotations

import json
import logging
import sys
import time
from pathlib import Path

import click

from ctxpack import __version__
from ctxpack.config import (
    ProjectConfig,
    find_project_root,
    get_store_path,
    load_config,
    save_config,
    set_config_value,
)
from ctxpack.exceptions import CtxPackError
from ctxpack.ui.console import Console

console = Console()


def _setup_logging(verbose: bool) -> None:
    from rich.console import Console as RichConsole
    from rich.logging import RichHandler

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=RichConsole(stderr=True), show_path=False)],
        force=True,
    )


def _get_project_root(path: str | None = None) -> Path:
    """Find the project root or error."""
    if path:
        root = Path(path).resolve()
        if not root.exists():
            console.error(f"Path does not exist: {path}")
            sys.exit(1)
        return root

    root = find_project_root()
    if root is None:
        console.error(
            "No ctxpack project found. Run 'ctxpack init' first, "
            "or specify a path with --path."
        )
        sys.exit(1)
    return root


def _load_config(root: Path) -> ProjectConfig:
    try:
        return load_config(root)
    except CtxPackError as e:
        console.error(str(e))
        sys.exit(1)


def _require_store(root: Path) -> Path:
    store_path = get_store_path(root)
    if not store_path.exists():
        console.error("No index found. Run 'ctxpack build' first.")
        sys.exit(1)
    return store_path


def _estimator(config: ProjectConfig):
    from ctxpack.tokens import TokenEstimator

    return TokenEstimator(config.chunking.encoding)


def _chunking_options(config: ProjectConfig, size: int | None = None,
                      overlap: int | None = None, mode: str | None = None):
    from ctxpack.chunking.chunker import ChunkingOptions

    return ChunkingOptions(
        chunk_size_tokens=size if size is not None else config.chunking.chunk_size_tokens,
        chunk_overlap_tokens=overlap if overlap is not None else config.chunking.chunk_overlap_tokens,
        mode=mode or config.chunking.mode,
    )


def _embedder(config: ProjectConfig):
    from ctxpack.embed.factory import create_embedder

    try:
        return create_embedder(config.embedding)
    except ValueError as e:
        console.error(str(e))
        sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="ctxpack")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def main(verbose: bool):
    """ctxpack - retrieve and pack relevant text into a token-bounded LLM context."""
    _setup_logging(verbose)


@main.command()
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.option("--provider", default=None, help="Embedding provider (hashing, openai, ollama).")
@click.option("--model", default=None, help="Embedding model name.")
def init(path: str | None, provider: str | None, model: str | None):
    """Initialize ctxpack for a directory. Writes .ctxpack/config.json."""
    root = Path(path or ".").resolve()
    if not root.exists():
        console.error(f"Path does not exist: {root}")
        sys.exit(1)

    console.banner()
    console.info(f"Initializing ctxpack for: {root}")

    config = _load_config(root)
    config.name = root.name
    config.root_path = str(root)

    if provider:
        config.embedding.provider = provider
    if model:
        config.embedding.model = model

    save_config(root, config)
    console.success("Configuration saved")
    console.info("Run 'ctxpack build' to index the project.")


@main.command()
@click.option("--path", "-p", default=None, help="Path to the project root.")
def build(path: str | None):
    """Read, chunk and embed the project, replacing the vector store."""
    root = _get_project_root(path)
    config = _load_config(root)
    _do_build(root, config)


def _do_build(root: Path, config: ProjectConfig):
    """Read documents, chunk them, embed them and write the store snapshot."""
    from ctxpack.chunking.documents import chunk_documents
    from ctxpack.index.reader import read_documents
    from ctxpack.index.store import VectorStore

    estimator = _estimator(config)
    embedder = _embedder(config)
    start_time = time.time()

    console.info("Reading and chunking documents...")
    docs = read_documents(root, config.reader)
    chunks = chunk_documents(
        docs, estimator, _chunking_options(config), config.chunking.single_chunk_tokens
    )
    if not chunks:
        console.warning("No indexable text found; writing an empty store.")

    store = VectorStore(get_store_path(root))
    try:
        with console.progress() as progress:
            task = progress.add_task("Embedding...", total=len(chunks) or None)

            def on_progress(done: int, total: int):
                progress.update(task, total=total, completed=done,
                                description=f"Embedded {done}/{total} chunks")

            records = store.build(chunks, embedder, config.embedding.batch_size, on_progress)
    except CtxPackError as e:
        console.error(f"Build failed: {e}")
        sys.exit(1)

    elapsed = time.time() - start_time
    stats = {
        "documents": len(docs),
        "code_files": sum(1 for d in docs if d.is_code),
        "chunks": len(records),
        "tokens": sum(r.meta.token_count for r in records),
        "dimension": len(records[0].embedding) if records else 0,
    }
    console.success(f"Indexed {len(docs)} documents in {elapsed:.1f}s")
    console.show_stats(stats)
    console.success("Vector store saved to .ctxpack/")


@main.command()
@click.argument("query")
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.option("--top-k", "-k", default=None, type=int, help="Number of hits to show.")
def search(query: str, path: str | None, top_k: int | None):
    """Rank stored chunks by similarity to QUERY."""
    root = _get_project_root(path)
    config = _load_config(root)
    store_path = _require_store(root)

    from ctxpack.index.store import VectorStore

    embedder = _embedder(config)
    try:
        hits = VectorStore(store_path).search(
            embedder.embed_one(query), top_k or config.retrieval.k
        )
    except CtxPackError as e:
        console.error(str(e))
        sys.exit(1)
    if hits:
        console.info(f"Found {len(hits)} hit(s) for '{query}':")
        console.show_hits(hits)
    else:
        console.warning(f"No results found for '{query}'")


@main.command()
@click.argument("query", required=False)
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.option("--num-ctx", type=int, default=None, help="Model context window in tokens.")
@click.option("--share", type=float, default=None, help="Share of the window for retrieved context.")
@click.option("--per-file-limit", type=int, default=None, help="Max chunks per file.")
@click.option("--reserve", type=int, default=None, help="Tokens reserved for the rest of the prompt.")
@click.option("--margin", type=float, default=None, help="Safety margin as a fraction (e.g. 0.05).")
@click.option("--top-k", "-k", type=int, default=None, help="Hits to retrieve before packing.")
@click.option("--summary", is_flag=True, help="Show packing summary instead of the context.")
def context(
    query: str | None, path: str | None, num_ctx: int | None, share: float | None,
    per_file_limit: int | None, reserve: int | None, margin: float | None,
    top_k: int | None, summary: bool,
):
    """Assemble a token-bounded context for QUERY.

    Examples:

        ctxpack context "how are requests retried?"

        ctxpack context "explain the storage layer" --num-ctx 4096 --summary
    """
    root = _get_project_root(path)
    config = _load_config(root)
    store_path = _require_store(root)
    retrieval = config.retrieval

    from ctxpack.context.engine import ContextAssembler
    from ctxpack.context.models import Budget
    from ctxpack.index.store import VectorStore

    try:
        budget = Budget(
            num_ctx=num_ctx if num_ctx is not None else retrieval.num_ctx,
            context_share=share if share is not None else retrieval.context_share,
            per_file_limit=per_file_limit or retrieval.per_file_limit,
            prompt_reserve=reserve if reserve is not None else retrieval.prompt_reserve,
            safety_margin_pct=margin if margin is not None else retrieval.safety_margin_pct,
        )
    except ValueError as e:
        console.error(f"Invalid budget: {e}")
        sys.exit(1)

    embedder = _embedder(config)
    try:
        hits = VectorStore(store_path).search(
            embedder.embed_one(query or retrieval.query), top_k or retrieval.k
        )
    except CtxPackError as e:
        console.error(str(e))
        sys.exit(1)
    result = ContextAssembler(_estimator(config)).assemble(hits, budget)

    if summary:
        click.echo(result.summary())
    elif result.context:
        click.echo(result.context)
    else:
        console.warning("No context fits the budget.")


@main.command()
@click.argument("pages_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.option("--max-tokens", type=int, default=None, help="Token ceiling per page.")
@click.option("--top-k", "-k", type=int, default=None, help="Hits to retrieve per page.")
@click.option("--output", "-o", type=click.Path(dir_okay=False), default=None,
              help="Write JSON here instead of stdout.")
def pages(pages_file: str, path: str | None, max_tokens: int | None,
          top_k: int | None, output: str | None):
    """Build one context per page described in PAGES_FILE (JSON).

    The file holds a list of {"title", "description"?, "targetFiles"?}
    objects, or an object with such a list under "pages".
    """
    root = _get_project_root(path)
    config = _load_config(root)
    store_path = _require_store(root)

    from pydantic import ValidationError

    from ctxpack.context.models import PageDescriptor
    from ctxpack.context.pages import PageContextBuilder
    from ctxpack.index.store import VectorStore

    try:
        data = json.loads(Path(pages_file).read_text())
        if isinstance(data, dict):
            data = data.get("pages", [])
        descriptors = [PageDescriptor.model_validate(p) for p in data]
    except (json.JSONDecodeError, ValidationError, TypeError) as e:
        console.error(f"Invalid pages file: {e}")
        sys.exit(1)

    builder = PageContextBuilder(
        VectorStore(store_path),
        _embedder(config),
        _estimator(config),
        max_tokens=max_tokens or config.retrieval.page_max_tokens,
        k=top_k or config.retrieval.page_k,
        per_file_limit=config.retrieval.per_file_limit,
    )
    try:
        results = builder.build(descriptors)
    except CtxPackError as e:
        console.error(str(e))
        sys.exit(1)
    payload = json.dumps([r.model_dump(by_alias=True) for r in results], indent=2)

    if output:
        Path(output).write_text(payload)
        console.success(f"Wrote {len(results)} page context(s) to {output}")
    else:
        click.echo(payload)


@main.command("chunk")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--size", type=int, default=None, help="Window size in tokens.")
@click.option("--overlap", type=int, default=None, help="Overlap in tokens.")
@click.option("--mode", type=click.Choice(["sentence", "token"]), default=None)
def chunk_cmd(file: str, size: int | None, overlap: int | None, mode: str | None):
    """Print the chunks of a single FILE."""
    from ctxpack.chunking.chunker import chunk_with_options

    root = find_project_root() or Path.cwd()
    config = _load_config(root)
    text = Path(file).read_text(encoding="utf-8", errors="replace")
    chunks = chunk_with_options(
        text, _chunking_options(config, size, overlap, mode), _estimator(config)
    )

    console.info(f"{len(chunks)} chunk(s)")
    for i, piece in enumerate(chunks):
        console.console.rule(f"chunk {i}")
        click.echo(piece)


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.argument("query")
@click.option("--top-k", "-k", type=int, default=6, help="Number of chunks to keep.")
@click.option("--min-length", type=int, default=200, help="Drop chunks this short or shorter.")
def select(file: str, query: str, top_k: int, min_length: int):
    """Pick the chunks of FILE most relevant to QUERY."""
    from ctxpack.chunking.chunker import chunk_with_options
    from ctxpack.context.selector import select_informative_chunks
    from ctxpack.text import clean_markdown

    root = find_project_root() or Path.cwd()
    config = _load_config(root)
    text = clean_markdown(Path(file).read_text(encoding="utf-8", errors="replace"))
    chunks = chunk_with_options(text, _chunking_options(config), _estimator(config))

    try:
        selected = select_informative_chunks(
            chunks, query, _embedder(config), top_k=top_k, min_length=min_length
        )
    except CtxPackError as e:
        console.error(str(e))
        sys.exit(1)
    if selected:
        console.info(f"Selected {len(selected)} of {len(chunks)} chunk(s)")
        console.show_selected(selected)
    else:
        console.warning("No informative chunks found")


# =========================================================================
# Config Management
# =========================================================================

@main.command("config")
@click.argument("action", type=click.Choice(["set", "get", "show"]))
@click.argument("key", required=False)
@click.argument("value", required=False)
@click.option("--path", "-p", default=None, help="Path to the project root.")
def config_cmd(action: str, key: str | None, value: str | None, path: str | None):
    """Manage ctxpack configuration."""
    root = _get_project_root(path)
    config = _load_config(root)

    if action == "show":
        console.console.print_json(json.dumps(config.model_dump(), indent=2))
    elif action == "get":
        if not key:
            console.error("Usage: ctxpack config get <key>")
            sys.exit(1)
        data = config.model_dump()
        for part in key.split("."):
            if isinstance(data, dict) and part in data:
                data = data[part]
            else:
                console.error(f"Unknown key: {key}")
                sys.exit(1)
        console.console.print(f"{key} = {data}", markup=False)
    elif action == "set":
        if not key or value is None:
            console.error("Usage: ctxpack config set <key> <value>")
            sys.exit(1)
        try:
            try:
                parsed_value = json.loads(value)
            except json.JSONDecodeError:
                parsed_value = value

            config = set_config_value(config, key, parsed_value)
            save_config(root, config)
            console.success(f"Set {key} = {parsed_value}")
        except KeyError:
            console.error(f"Unknown config key: {key}")
            sys.exit(1)
        except CtxPackError as e:
            console.error(str(e))
            sys.exit(1)


if __name__ == "__main__":
    main()
