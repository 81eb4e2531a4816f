ARTIFACTS_DDL = """
CREATE TABLE IF NOT EXISTS artifacts (
    digest String COMMENT 'Artifact digest (algorithm:value)',
    name Nullable(String) COMMENT 'Artifact Name',
    tags Array(String) COMMENT 'Artifact Tags',
    source_info Nullable(String) COMMENT 'Origin document locator',
    collector_info Nullable(String) COMMENT 'Ingesting collector',
    updated_at DateTime64(3) DEFAULT now64(3) COMMENT 'Last Updated Time'
) ENGINE = MergeTree
ORDER BY (digest)
""".strip()

PACKAGES_DDL = """
CREATE TABLE IF NOT EXISTS packages (
    purl String COMMENT 'Package URL',
    name Nullable(String) COMMENT 'Package Name',
    version Nullable(String) COMMENT 'Package Version',
    digests Array(String) COMMENT 'Package Digests',
    cpes Array(String) COMMENT 'CPE Identifiers',
    tags Array(String) COMMENT 'Package Tags',
    source_info Nullable(String) COMMENT 'Origin document locator',
    collector_info Nullable(String) COMMENT 'Ingesting collector',
    updated_at DateTime64(3) DEFAULT now64(3) COMMENT 'Last Updated Time'
) ENGINE = MergeTree
ORDER BY (purl)
""".strip()

BUILDERS_DDL = """
CREATE TABLE IF NOT EXISTS builders (
    type String COMMENT 'Builder Type',
    id String COMMENT 'Builder ID',
    source_info Nullable(String) COMMENT 'Origin document locator',
    collector_info Nullable(String) COMMENT 'Ingesting collector',
    updated_at DateTime64(3) DEFAULT now64(3) COMMENT 'Last Updated Time'
) ENGINE = MergeTree
ORDER BY (type, id)
""".strip()

ARTIFACT_BUILDERS_DDL = """
CREATE TABLE IF NOT EXISTS artifact_builders (
    artifact_digest String COMMENT 'Built Artifact',
    builder_type String COMMENT 'Builder Type',
    builder_id String COMMENT 'Builder ID',
    updated_at DateTime64(3) DEFAULT now64(3) COMMENT 'Last Updated Time'
) ENGINE = ReplacingMergeTree(updated_at)
ORDER BY (artifact_digest, builder_type, builder_id)
""".strip()

DEPENDENCIES_DDL = """
CREATE TABLE IF NOT EXISTS dependencies (
    subject_kind LowCardinality(String) COMMENT 'Artifact or Package',
    subject_key String COMMENT 'Digest or purl of the dependent',
    object_kind LowCardinality(String) COMMENT 'Artifact or Package',
    object_key String COMMENT 'Digest or purl of the dependency',
    updated_at DateTime64(3) DEFAULT now64(3) COMMENT 'Last Updated Time'
) ENGINE = ReplacingMergeTree(updated_at)
ORDER BY (subject_kind, subject_key, object_kind, object_key)
""".strip()

PACKAGE_CONTENTS_DDL = """
CREATE TABLE IF NOT EXISTS package_contents (
    purl String COMMENT 'Containing Package',
    artifact_digest String COMMENT 'Contained Artifact',
    updated_at DateTime64(3) DEFAULT now64(3) COMMENT 'Last Updated Time'
) ENGINE = ReplacingMergeTree(updated_at)
ORDER BY (purl, artifact_digest)
""".strip()

DOCUMENTS_DDL = """
CREATE TABLE IF NOT EXISTS documents (
    typename LowCardinality(String) COMMENT 'Attestation, Metadata, Identity or Vulnerability',
    identity String COMMENT 'Identity key as JSON',
    body String COMMENT 'Entity record as JSON',
    updated_at DateTime64(3) DEFAULT now64(3) COMMENT 'Last Updated Time'
) ENGINE = ReplacingMergeTree(updated_at)
ORDER BY (typename, identity)
""".strip()

ALL_DDL = {
    'artifacts': ARTIFACTS_DDL,
    'packages': PACKAGES_DDL,
    'builders': BUILDERS_DDL,
    'artifact_builders': ARTIFACT_BUILDERS_DDL,
    'dependencies': DEPENDENCIES_DDL,
    'package_contents': PACKAGE_CONTENTS_DDL,
    'documents': DOCUMENTS_DDL,
}

# Identity columns per table; node tables hold one row per version of an identity.
TABLE_KEYS = {
    'artifacts': ['digest'],
    'packages': ['purl'],
    'builders': ['type', 'id'],
    'artifact_builders': ['artifact_digest', 'builder_type', 'builder_id'],
    'dependencies': ['subject_kind', 'subject_key', 'object_kind', 'object_key'],
    'package_contents': ['purl', 'artifact_digest'],
    'documents': ['typename', 'identity'],
}
