"""Packages that duplicate functionality now shipped in Node.js core."""

from e18e_analyzer.models.schemas import Candidate, CandidateSource, ReplacementType

# (module name, built-in replacement, first Node version that has it)
NODE_BUILTIN_OVERLAPS: list[tuple[str, str, str]] = [
    # fs
    ("mkdirp", "fs.mkdirSync(path, { recursive: true })", "10.12.0"),
    ("rimraf", "fs.rmSync(path, { recursive: true, force: true })", "14.14.0"),
    ("fs-extra", "Node fs with recursive options", "14.14.0"),
    ("glob", "fs.globSync() or fs.glob()", "22.0.0"),
    ("globby", "fs.glob() with patterns", "22.0.0"),
    ("fast-glob", "fs.glob()", "22.0.0"),
    # fetch
    ("node-fetch", "global fetch()", "18.0.0"),
    ("cross-fetch", "global fetch()", "18.0.0"),
    ("isomorphic-fetch", "global fetch()", "18.0.0"),
    ("whatwg-fetch", "global fetch()", "18.0.0"),
    ("unfetch", "global fetch()", "18.0.0"),
    ("make-fetch-happen", "global fetch()", "18.0.0"),
    # test runner
    ("tape", "node:test", "18.0.0"),
    # util
    ("util.promisify", "node:util promisify()", "8.0.0"),
    ("pify", "node:util promisify()", "8.0.0"),
    ("path-is-absolute", "path.isAbsolute()", "0.12.0"),
    ("assert", "node:assert", "0.10.0"),
    # buffer
    ("safe-buffer", "Buffer.alloc() / Buffer.from()", "6.0.0"),
    ("buffer-from", "Buffer.from()", "6.0.0"),
    # structured clone
    ("lodash.clonedeep", "structuredClone()", "17.0.0"),
    ("clone-deep", "structuredClone()", "17.0.0"),
    ("rfdc", "structuredClone()", "17.0.0"),
    ("abort-controller", "global AbortController", "15.0.0"),
    # URL
    ("url-parse", "global URL", "10.0.0"),
    ("whatwg-url", "global URL", "10.0.0"),
    ("query-string", "URLSearchParams", "10.0.0"),
    ("uuid", "crypto.randomUUID()", "19.0.0"),
    # argument parsing
    ("minimist", "node:util parseArgs()", "18.3.0"),
    ("yargs-parser", "node:util parseArgs()", "18.3.0"),
]


async def get_candidates() -> list[Candidate]:
    """Return one native-replacement candidate per Node built-in overlap."""
    return [
        Candidate(
            module_name=name,
            source=CandidateSource.NODE_BUILTIN,
            replacement_type=ReplacementType.NATIVE,
            replacement=replacement,
            min_node_version=min_node,
        )
        for name, replacement, min_node in NODE_BUILTIN_OVERLAPS
    ]
