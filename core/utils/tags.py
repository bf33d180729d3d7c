"""
Tagging scheme that marks every AWS resource created by basti as managed.

Membership in the managed set is decided by these tags alone, so cleanup can
always rediscover resources from the account without any local state.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

TAG_PREFIX = "basti"
MANAGED_TAG_KEY = f"{TAG_PREFIX}:managed"
MANAGED_TAG_VALUE = "true"
BASTION_ID_TAG_KEY = f"{TAG_PREFIX}:bastion-id"
VPC_ID_TAG_KEY = f"{TAG_PREFIX}:vpc-id"
RESOURCE_GROUP_TAG_KEY = f"{TAG_PREFIX}:resource-group"
TARGET_TAG_KEY = f"{TAG_PREFIX}:target"
CREATED_AT_TAG_KEY = f"{TAG_PREFIX}:created-at"

BASTION_NAME_PREFIX = "basti-instance"
ACCESS_NAME_PREFIX = "basti-access"

TagList = List[Dict[str, str]]


def bastion_resource_name(bastion_id: str) -> str:
    """Name shared by the bastion instance, its security group, role and profile."""
    return f"{BASTION_NAME_PREFIX}-{bastion_id}"


def access_resource_name(bastion_id: str) -> str:
    """Name of the access security group attached to a target."""
    return f"{ACCESS_NAME_PREFIX}-{bastion_id}"


def managed_tags(
    resource_group: str,
    name: Optional[str] = None,
    bastion_id: Optional[str] = None,
    vpc_id: Optional[str] = None,
    extra: Optional[Dict[str, str]] = None,
) -> Dict[str, str]:
    """
    Generate the tags applied to a managed resource at creation time.

    Args:
        resource_group: ManagedResourceGroup value the resource belongs to
        name: Value for the ``Name`` tag
        bastion_id: Bastion the resource was created for
        vpc_id: VPC the bastion lives in
        extra: Additional tags to include

    Returns:
        Dictionary of tags
    """
    tags = {
        MANAGED_TAG_KEY: MANAGED_TAG_VALUE,
        RESOURCE_GROUP_TAG_KEY: resource_group,
        CREATED_AT_TAG_KEY: datetime.utcnow().isoformat() + "Z",
    }
    if name:
        tags["Name"] = name
    if bastion_id:
        tags[BASTION_ID_TAG_KEY] = bastion_id
    if vpc_id:
        tags[VPC_ID_TAG_KEY] = vpc_id
    if extra:
        tags.update(extra)

    return tags


def to_aws_tags(tags: Dict[str, str]) -> TagList:
    """Convert a tag dictionary to the AWS ``[{Key, Value}]`` representation."""
    return [{"Key": key, "Value": value} for key, value in tags.items()]


def tags_to_dict(tags: Optional[TagList]) -> Dict[str, str]:
    """Convert an AWS tag list to a dictionary."""
    return {tag["Key"]: tag["Value"] for tag in tags or [] if "Key" in tag}


def ec2_tag_specifications(resource_type: str, tags: Dict[str, str]) -> List[Dict[str, Any]]:
    """Build the ``TagSpecifications`` parameter so EC2 tags on creation."""
    return [{"ResourceType": resource_type, "Tags": to_aws_tags(tags)}]


def managed_filters(resource_group: Optional[str] = None) -> List[Dict[str, Any]]:
    """EC2 describe filters selecting managed resources."""
    filters = [{"Name": f"tag:{MANAGED_TAG_KEY}", "Values": [MANAGED_TAG_VALUE]}]
    if resource_group:
        filters.append(
            {"Name": f"tag:{RESOURCE_GROUP_TAG_KEY}", "Values": [resource_group]}
        )
    return filters


def is_managed(tags: Union[Dict[str, str], TagList, None]) -> bool:
    """
    Check whether a resource carries the managed tag.

    Args:
        tags: Tags as a dictionary or an AWS tag list

    Returns:
        True if the resource was created by basti
    """
    if isinstance(tags, list):
        tags = tags_to_dict(tags)
    return bool(tags) and tags.get(MANAGED_TAG_KEY) == MANAGED_TAG_VALUE


def get_bastion_id(tags: Union[Dict[str, str], TagList, None]) -> Optional[str]:
    """Extract the bastion id from resource tags."""
    if isinstance(tags, list):
        tags = tags_to_dict(tags)
    return (tags or {}).get(BASTION_ID_TAG_KEY)
