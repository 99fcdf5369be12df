"""Polyfills for features every supported Node LTS and Baseline browser ships."""

from e18e_analyzer.models.schemas import Candidate, CandidateSource, ReplacementType

# (module name, native replacement, first Node version that has it)
EXPIRED_POLYFILLS: list[tuple[str, str, str]] = [
    # Array
    ("array-includes", "Array.prototype.includes()", "6.0.0"),
    ("array.prototype.includes", "Array.prototype.includes()", "6.0.0"),
    ("array-find", "Array.prototype.find()", "4.0.0"),
    ("array.prototype.find", "Array.prototype.find()", "4.0.0"),
    ("array.prototype.findindex", "Array.prototype.findIndex()", "4.0.0"),
    ("array.from", "Array.from()", "4.0.0"),
    ("array.prototype.flat", "Array.prototype.flat()", "11.0.0"),
    ("array.prototype.flatmap", "Array.prototype.flatMap()", "11.0.0"),
    ("array-every", "Array.prototype.every()", "0.10.0"),
    ("array-map", "Array.prototype.map()", "0.10.0"),
    ("array-foreach", "Array.prototype.forEach()", "0.10.0"),
    ("array-filter", "Array.prototype.filter()", "0.10.0"),
    ("array-reduce", "Array.prototype.reduce()", "0.10.0"),
    ("isarray", "Array.isArray()", "0.10.0"),
    # Object
    ("object-assign", "Object.assign()", "4.0.0"),
    ("object.assign", "Object.assign()", "4.0.0"),
    ("object-keys", "Object.keys()", "0.10.0"),
    ("object.entries", "Object.entries()", "8.0.0"),
    ("object.values", "Object.values()", "8.0.0"),
    ("object.fromentries", "Object.fromEntries()", "12.0.0"),
    ("has", "Object.hasOwn()", "16.9.0"),
    ("hasown", "Object.hasOwn()", "16.9.0"),
    # String
    ("string.prototype.trim", "String.prototype.trim()", "0.10.0"),
    ("string.prototype.trimstart", "String.prototype.trimStart()", "10.0.0"),
    ("string.prototype.trimend", "String.prototype.trimEnd()", "10.0.0"),
    ("string.prototype.padstart", "String.prototype.padStart()", "8.0.0"),
    ("string.prototype.padend", "String.prototype.padEnd()", "8.0.0"),
    ("string.prototype.startswith", "String.prototype.startsWith()", "4.0.0"),
    ("string.prototype.endswith", "String.prototype.endsWith()", "4.0.0"),
    ("string.prototype.repeat", "String.prototype.repeat()", "4.0.0"),
    ("string.prototype.replaceall", "String.prototype.replaceAll()", "15.0.0"),
    ("string.prototype.matchall", "String.prototype.matchAll()", "12.0.0"),
    ("string.prototype.at", "String.prototype.at()", "16.6.0"),
    # Promise
    ("es6-promise", "native Promise", "4.0.0"),
    ("promise-polyfill", "native Promise", "4.0.0"),
    ("promise.allsettled", "Promise.allSettled()", "12.9.0"),
    ("promise.any", "Promise.any()", "15.0.0"),
    # Symbol, iterators, collections
    ("es6-symbol", "native Symbol", "4.0.0"),
    ("es6-iterator", "native iterators", "4.0.0"),
    ("es6-map", "native Map", "4.0.0"),
    ("es6-set", "native Set", "4.0.0"),
    ("es6-weak-map", "native WeakMap", "4.0.0"),
    # Number / Math
    ("is-nan", "Number.isNaN()", "0.10.0"),
    ("number-is-nan", "Number.isNaN()", "0.10.0"),
    ("is-finite", "Number.isFinite()", "0.10.0"),
    ("number.isinteger", "Number.isInteger()", "0.12.0"),
    ("math.sign", "Math.sign()", "0.12.0"),
    # Type checks
    ("is-number", "typeof x === 'number'", "0.10.0"),
    ("is-string", "typeof x === 'string'", "0.10.0"),
    ("is-boolean-object", "typeof x === 'boolean'", "0.10.0"),
    ("is-symbol", "typeof x === 'symbol'", "4.0.0"),
    ("is-plain-object", "manual check or structuredClone", "0.10.0"),
    ("is-plain-obj", "manual check", "0.10.0"),
    ("is-regexp", "x instanceof RegExp", "0.10.0"),
    ("is-date-object", "x instanceof Date", "0.10.0"),
    ("is-arguments", "Array.isArray() or spread", "0.10.0"),
    # Misc
    ("array-buffer-byte-length", "ArrayBuffer.prototype.byteLength", "0.10.0"),
    ("arraybuffer.prototype.slice", "ArrayBuffer.prototype.slice()", "0.10.0"),
    ("define-properties", "Object.defineProperties()", "0.10.0"),
    ("globalthis", "globalThis", "12.0.0"),
    ("json-stable-stringify", "JSON.stringify() with sorted keys", "0.10.0"),
]


async def get_candidates() -> list[Candidate]:
    return [
        Candidate(
            module_name=name,
            source=CandidateSource.POLYFILL_DECAY,
            replacement_type=ReplacementType.NATIVE,
            replacement=replacement,
            min_node_version=min_node,
        )
        for name, replacement, min_node in EXPIRED_POLYFILLS
    ]
