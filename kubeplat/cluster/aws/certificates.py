from __future__ import annotations

from typing import Dict

import pulumi
import pulumi_aws as aws

from kubeplat.cluster.context import Context
from kubeplat.config import Certificate
from kubeplat.utils import kubify_name, merge_tags


def _create_validation(
    resource_name: str, certificate: aws.acm.Certificate, cert: Certificate
) -> aws.acm.CertificateValidation:
    # One record per distinct domain; wildcard and apex share a record
    domains = list(dict.fromkeys([cert.domainName] + cert.subjectAlternativeNames))
    records = []
    for i in range(len(domains)):
        option = certificate.domain_validation_options[i]
        records.append(
            aws.route53.Record(
                f"{resource_name}-validation-{i}",
                zone_id=cert.zoneId,
                name=option.resource_record_name,
                type=option.resource_record_type,
                records=[option.resource_record_value],
                ttl=60,
                allow_overwrite=True,
                opts=pulumi.ResourceOptions(parent=certificate),
            )
        )

    return aws.acm.CertificateValidation(
        f"{resource_name}-validation",
        certificate_arn=certificate.arn,
        validation_record_fqdns=[record.fqdn for record in records],
        opts=pulumi.ResourceOptions(parent=certificate),
    )


def create_certificates(ctx: Context) -> Dict[str, pulumi.Output[str]]:
    """
    Requests a DNS-validated ACM certificate for every declared certificate.

    When a Route53 zone id is given, the validation records are created in the
    zone and the stack waits for the certificate to be issued. Otherwise the
    validation records have to be created by the owner of the domain.

    Returns:
        Dict[str, pulumi.Output[str]]: The certificate ARNs by domain name.
    """
    arns = {}
    for cert in ctx.cloud_config.certificates:
        resource_name = f"{ctx.cluster_name}-{kubify_name(cert.domainName)}-cert"
        certificate = aws.acm.Certificate(
            resource_name,
            domain_name=cert.domainName,
            subject_alternative_names=cert.subjectAlternativeNames or None,
            validation_method="DNS",
            tags=merge_tags(ctx.tags),
        )

        if cert.zoneId:
            validation = _create_validation(resource_name, certificate, cert)
            arns[cert.domainName] = validation.certificate_arn
        else:
            arns[cert.domainName] = certificate.arn
    return arns
