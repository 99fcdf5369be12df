"""Well-known deprecated packages that still show up in dependency trees."""

from e18e_analyzer.models.schemas import Candidate, CandidateSource, ReplacementType

KNOWN_DEPRECATED: dict[str, str] = {
    "request": "undici or global fetch()",
    "request-promise": "undici or global fetch()",
    "request-promise-native": "undici or global fetch()",
    "nomnom": "commander or node:util parseArgs()",
    "colors": "picocolors or chalk",
    "querystring": "URLSearchParams",
    "domain": "AsyncLocalStorage",
    "natives": "remove, no longer needed",
    "tinycolor2": "@ctrl/tinycolor",
    "stable": "Array.prototype.sort() (stable since Node 12)",
    "flatten": "Array.prototype.flat()",
    "circular-json": "flatted",
    "left-pad": "String.prototype.padStart()",
    "har-validator": "remove, no longer needed",
    "osenv": "node:os",
    "read-installed": "@npmcli/arborist",
    "ini": "remove or inline parser",
    "formidable": "busboy or @fastify/busboy",
    "sane": "node:fs/promises watch()",
    "chokidar": "node:fs/promises watch() (Node 20+)",
    "core-js": "target modern engines only",
    "urix": "remove, no longer needed",
    "resolve-url": "remove, no longer needed",
    "source-map-url": "remove, no longer needed",
    "source-map-resolve": "remove, no longer needed",
    "swagger-ui": "@scalar/api-reference or stoplight/elements",
}


async def get_candidates() -> list[Candidate]:
    return [
        Candidate(
            module_name=name,
            source=CandidateSource.DEPRECATED,
            replacement_type=ReplacementType.REMOVE,
            replacement=replacement,
        )
        for name, replacement in KNOWN_DEPRECATED.items()
    ]
