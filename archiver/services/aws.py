"""
AWS client construction.

Clients are built explicitly by the caller and handed to the services that
use them. A named profile (e.g. an SSO profile) is used for local runs;
otherwise boto3's default credential chain applies.
"""

from typing import Optional

import boto3


def create_session(region: Optional[str] = None, profile: Optional[str] = None) -> boto3.session.Session:
    """
    Create a boto3 session.

    Args:
        region: AWS region; boto3's default resolution when None
        profile: Named profile; default credential chain when None
    """
    if profile:
        return boto3.session.Session(profile_name=profile, region_name=region)
    return boto3.session.Session(region_name=region)
