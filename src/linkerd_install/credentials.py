"""Identity issuer credential initialization.

Before the control plane is rendered the identity issuer needs a
certificate, a private key and the trust anchors proxies use to verify it.
They are either read from an externally managed Secret, supplied by the
user, or generated here.
"""

from __future__ import annotations

import base64
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from loguru import logger

from .constants import InstallConstants
from .errors import CredentialError, InstallError
from .infra.command import CommandRunner
from .infra.k8s import KubernetesAPI, run_sync
from .values.flags import EXTERNAL_ISSUER_SCHEME
from .values.model import Values


@dataclass(frozen=True)
class IssuerMaterial:
    """Generated issuer certificate, key and trust anchors (PEM)."""

    trust_anchors_pem: str
    issuer_crt_pem: str
    issuer_key_pem: str
    expiry: str


class IssuerGenerator(Protocol):
    def generate(self, trust_domain: str) -> IssuerMaterial: ...


def issuer_name(trust_domain: str) -> str:
    return f"identity.linkerd.{trust_domain}"


class OpenSSLIssuerGenerator:
    """Generates an ECDSA P-256 root and issuer certificate with openssl.

    The root is self-signed and becomes the trust anchor; the issuer is an
    intermediate CA signed by it and limited to issuing leaf certificates.
    """

    CURVE = "prime256v1"

    def __init__(
        self, runner: CommandRunner | None = None, validity_days: int = 365
    ) -> None:
        self.runner = runner or CommandRunner()
        self.validity_days = validity_days

    def generate(self, trust_domain: str) -> IssuerMaterial:
        subject = f"/CN={issuer_name(trust_domain)}"
        days = str(self.validity_days)

        with tempfile.TemporaryDirectory(prefix="linkerd-identity-") as tmp:
            work = Path(tmp)
            ca_key, ca_crt = work / "ca.key", work / "ca.crt"
            key, csr, crt = work / "issuer.key", work / "issuer.csr", work / "issuer.crt"
            ext = work / "issuer.ext"
            ext.write_text(
                "basicConstraints=critical,CA:TRUE,pathlen:0\n"
                "keyUsage=critical,keyCertSign,cRLSign\n"
            )

            self._openssl("ecparam", "-name", self.CURVE, "-genkey", "-noout", "-out", str(ca_key))
            self._openssl(
                "req", "-x509", "-new", "-key", str(ca_key), "-sha256",
                "-days", days, "-subj", subject, "-out", str(ca_crt),
                "-addext", "basicConstraints=critical,CA:TRUE",
                "-addext", "keyUsage=critical,keyCertSign,cRLSign",
            )
            self._openssl("ecparam", "-name", self.CURVE, "-genkey", "-noout", "-out", str(key))
            self._openssl(
                "req", "-new", "-key", str(key), "-subj", subject, "-out", str(csr)
            )
            self._openssl(
                "x509", "-req", "-in", str(csr), "-CA", str(ca_crt),
                "-CAkey", str(ca_key), "-CAcreateserial", "-sha256",
                "-days", days, "-extfile", str(ext), "-out", str(crt),
            )
            end_date = self._openssl("x509", "-in", str(crt), "-noout", "-enddate")

            return IssuerMaterial(
                trust_anchors_pem=ca_crt.read_text(),
                issuer_crt_pem=crt.read_text(),
                issuer_key_pem=key.read_text(),
                expiry=parse_openssl_enddate(end_date),
            )

    def _openssl(self, *args: str) -> str:
        try:
            result = self.runner.run(["openssl", *args])
        except FileNotFoundError as e:
            raise CredentialError(
                "failed to generate identity credentials: openssl is not installed"
            ) from e
        if not result.success:
            raise CredentialError(
                f"failed to generate identity credentials: openssl {args[0]} "
                f"exited with {result.returncode}",
                details=result.stderr.strip() or None,
            )
        return result.stdout


def parse_openssl_enddate(output: str) -> str:
    """Convert ``notAfter=Oct 18 12:00:00 2027 GMT`` to RFC 3339."""
    _, _, value = output.strip().partition("=")
    try:
        parsed = datetime.strptime(" ".join(value.split()), "%b %d %H:%M:%S %Y %Z")
    except ValueError as e:
        raise CredentialError(f"unexpected certificate end date: {output.strip()!r}") from e
    return parsed.replace(tzinfo=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class IssuerCredentials:
    """Populates the identity issuer settings of the values."""

    def __init__(self, generator: IssuerGenerator | None = None) -> None:
        self.generator = generator or OpenSSLIssuerGenerator()

    def initialize(self, api: KubernetesAPI | None, values: Values) -> None:
        """Fill in the issuer credentials and trust anchors, in place.

        Args:
            api: Cluster client, or None when the cluster is ignored
            values: Effective values

        Raises:
            CredentialError: If credentials are incomplete, cannot be read
                from the cluster or cannot be generated
        """
        issuer = values.identity.issuer
        glob = values.global_

        if issuer.scheme == EXTERNAL_ISSUER_SCHEME:
            if api is None:
                raise CredentialError(
                    "--ignore-cluster is not supported when --identity-external-issuer=true"
                )
            glob.identity_trust_anchors_pem = self._fetch_external_trust_anchors(
                api, glob.namespace
            )
            logger.info("Using externally managed identity issuer credentials")
            return

        if issuer.tls.key_pem or issuer.tls.crt_pem:
            if not glob.identity_trust_anchors_pem:
                raise CredentialError(
                    "a trust anchors file must be specified if other credentials are provided"
                )
            if not issuer.tls.key_pem:
                raise CredentialError(
                    "an issuer key file must be specified if other credentials are provided"
                )
            if not issuer.tls.crt_pem:
                raise CredentialError(
                    "an issuer certificate file must be specified if other credentials are provided"
                )
            logger.info("Using supplied identity issuer credentials")
            return

        logger.info(
            f"Generating identity issuer credentials for {issuer_name(glob.identity_trust_domain)}"
        )
        material = self.generator.generate(glob.identity_trust_domain)
        issuer.crt_expiry = material.expiry
        issuer.tls.crt_pem = material.issuer_crt_pem
        issuer.tls.key_pem = material.issuer_key_pem
        glob.identity_trust_anchors_pem = material.trust_anchors_pem

    def _fetch_external_trust_anchors(self, api: KubernetesAPI, namespace: str) -> str:
        name = InstallConstants.IDENTITY_ISSUER_SECRET_NAME
        try:
            secret = run_sync(api.get_secret(namespace, name))
        except InstallError as e:
            raise CredentialError(
                f"failed to read the external issuer secret '{name}': {e.message}"
            ) from e

        data = secret.get("data") or {}
        for key in ("ca.crt", "tls.crt", "tls.key"):
            if not data.get(key):
                raise CredentialError(
                    f"the external issuer secret '{name}' has no '{key}' entry"
                )
        return base64.b64decode(data["ca.crt"]).decode()
