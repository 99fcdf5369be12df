"""Effort multipliers for "documented" replacements, keyed by docs path.

Multipliers range from 0.20 (very hard) to 1.0 (trivial) and estimate how
easy it is for an outside contributor to remove the dependency from a
typical consumer: number of call sites, API surface, how deeply embedded.
"""

EFFORT_TIERS: dict[str, float] = {
    # Trivial: single function, drop-in replacement
    "buf-compare": 0.95,
    "buffer-equal": 0.95,
    "buffer-equals": 0.95,
    "builtin-modules": 0.90,
    "is-builtin-module": 0.90,
    "mkdirp": 0.90,
    "rimraf": 0.90,
    "path-exists": 0.90,
    "core-util-is": 0.90,
    "invariant": 0.90,
    "utf8": 0.90,
    "sort-object": 0.90,
    "emoji-regex": 0.90,
    "find-up": 0.85,
    "find-file-up": 0.85,
    "find-pkg": 0.85,
    "find-cache-dir": 0.85,
    "find-cache-directory": 0.85,
    "pkg-dir": 0.85,
    "read-pkg": 0.85,
    "read-pkg-up": 0.85,
    "read-package-up": 0.85,
    "md5": 0.85,
    "shortid": 0.85,
    "body-parser": 0.85,
    "tempy": 0.85,
    "dot-prop": 0.85,
    "uri-js": 0.85,
    "grapheme": 0.85,
    "graphemer": 0.85,
    "strip-ansi": 0.85,
    "string-width": 0.80,
    "object-hash": 0.80,
    # Moderate: a few call sites, clear migration path
    "glob": 0.75,
    "ez-spawn": 0.75,
    "process-exec": 0.75,
    "dotenv": 0.75,
    "qs": 0.75,
    "deep-equal": 0.75,
    "cpx": 0.75,
    "chalk": 0.70,
    "globby": 0.70,
    "fast-glob": 0.70,
    "js-yaml": 0.70,
    "ora": 0.70,
    "npm-run-all": 0.70,
    "xmldom": 0.70,
    "fetch": 0.65,
    "depcheck": 0.65,
    "lint-staged": 0.65,
    "traverse": 0.65,
    "execa": 0.60,
    "readable-stream": 0.60,
    "crypto-js": 0.60,
    "faker": 0.55,
    # Hard: pervasive usage, complex migration
    "fs-extra": 0.45,
    "portal-vue": 0.35,
    "lodash-underscore": 0.30,
    "bluebird-q": 0.25,
    "materialize-css": 0.25,
    "moment": 0.20,
    "jquery": 0.20,
    # ESLint plugins: config-level change
    "eslint-plugin-es": 0.70,
    "eslint-plugin-eslint-comments": 0.70,
    "eslint-plugin-vitest": 0.70,
    "eslint-plugin-node": 0.65,
    "jsx-ast-utils": 0.65,
    "eslint-plugin-import": 0.55,
    "eslint-plugin-react": 0.55,
}

# Documented replacements with no entry above
DEFAULT_EFFORT = 0.50
