import json


# Files bound to a DAM asset are named "<assetId>__<rest>", searched by prefix then
# confirmed through the $app:dam.asset_id metafield.
FILES_BY_QUERY = """
query FilesByQuery($first: Int!, $query: String!, $namespace: String!) {
  files(first: $first, query: $query) {
    edges {
      node {
        __typename
        id
        alt
        fileStatus
        createdAt
        ... on MediaImage {
          image { url }
          metafields(namespace: $namespace, first: 10) { edges { node { key value type } } }
        }
        ... on GenericFile {
          url
          metafields(namespace: $namespace, first: 10) { edges { node { key value type } } }
        }
        ... on Video {
          metafields(namespace: $namespace, first: 10) { edges { node { key value type } } }
        }
      }
    }
  }
}
""".strip()


STAGED_UPLOADS_CREATE = """
mutation stagedUploadsCreate($input: [StagedUploadInput!]!) {
  stagedUploadsCreate(input: $input) {
    stagedTargets {
      url
      resourceUrl
      parameters { name value }
    }
    userErrors { field message }
  }
}
""".strip()


FILE_CREATE = """
mutation fileCreate($files: [FileCreateInput!]!) {
  fileCreate(files: $files) {
    files {
      __typename
      id
      alt
      fileStatus
    }
    userErrors { field message code }
  }
}
""".strip()


FILE_UPDATE = """
mutation fileUpdate($files: [FileUpdateInput!]!) {
  fileUpdate(files: $files) {
    files {
      __typename
      id
      alt
      fileStatus
    }
    userErrors { field message code }
  }
}
""".strip()


METAFIELDS_SET = """
mutation metafieldsSet($metafields: [MetafieldsSetInput!]!) {
  metafieldsSet(metafields: $metafields) {
    metafields { id key namespace }
    userErrors { field message code }
  }
}
""".strip()


SHOP_PING = """
{
  shop {
    name
    myshopifyDomain
  }
}
""".strip()


def escape_search_value(value: str) -> str:
    """Escape a value for Shopify search syntax (no surrounding quotes, keeps '*' usable)."""
    escaped = json.dumps(value or "")[1:-1]
    for ch in (":", "(", ")", " "):
        escaped = escaped.replace(ch, "\\" + ch)
    return escaped
