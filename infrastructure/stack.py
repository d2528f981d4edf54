"""Main CDK Stack for the application infrastructure.

This stack creates all AWS resources needed to serve the containerized web
application from ECS on EC2, including:
- VPC with public/private subnets
- ECS cluster, task role and task definition
- Auto-scaling group and capacity provider
- EC2 service and application container
- Application Load Balancer with HTTP redirect and HTTPS listener
- Security group ingress/egress rules
- Route 53 alias record
"""

import logging
from typing import Optional

import aws_cdk as cdk
from aws_cdk import (
    aws_autoscaling as autoscaling,
    aws_certificatemanager as acm,
    aws_ec2 as ec2,
    aws_ecs as ecs,
    aws_elasticloadbalancingv2 as elbv2,
    aws_iam as iam,
    aws_route53 as route53,
    aws_route53_targets as route53_targets,
)
from constructs import Construct

from infrastructure.assets import container_image_from_source
from infrastructure.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-east-1"


def build_environment(app: cdk.App, settings: Settings) -> cdk.Environment:
    """Build the deployment environment of the stack.

    Settings take precedence over the ``-c account=`` / ``-c region=`` CDK
    context. The region falls back to ``us-east-1``.

    Args:
        app: CDK application providing the context.
        settings: Deployment settings.

    Returns:
        Environment with a concrete account and region.

    Raises:
        ValueError: If no account is configured. The hosted zone lookup
            needs a concrete account.
    """
    account = settings.aws_account_id or app.node.try_get_context("account")
    if not account:
        raise ValueError(
            "AWS_ACCOUNT_ID must be set (or passed as -c account=...) "
            "to look up the hosted zone"
        )

    region = (
        settings.aws_default_region
        or app.node.try_get_context("region")
        or DEFAULT_REGION
    )
    logger.debug(f"Deploying to account {account} in {region}")
    return cdk.Environment(account=account, region=region)


class AppStack(cdk.Stack):
    """Main stack for the application infrastructure."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        settings: Optional[Settings] = None,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.settings = settings or default_settings
        logger.info(f"Synthesizing {construct_id} for {self.settings.app_url}")

        self.vpc = self._create_vpc()
        self.cluster = self._create_cluster()
        self.task_role = self._create_task_role()
        self.task_definition = self._create_task_definition()
        self.asg = self._create_auto_scaling_group()
        self.capacity_provider = self._create_capacity_provider()
        self.service = self._create_service()
        self.container = self._add_container()
        self.certificate = self._import_certificate()
        self.load_balancer = self._create_load_balancer()
        self.listener = self._create_https_listener()
        self._setup_ingress()
        self.record = self._create_dns_record()
        self._add_outputs()

    def _create_vpc(self) -> ec2.Vpc:
        """Create VPC with public and private subnets."""
        logger.debug(
            f"VPC {self.settings.vpc_cidr} with {self.settings.nat_gateways} NAT gateways"
        )
        return ec2.Vpc(
            self,
            "AppVPC",
            ip_addresses=ec2.IpAddresses.cidr(self.settings.vpc_cidr),
            max_azs=self.settings.max_azs,
            nat_gateways=self.settings.nat_gateways,
            subnet_configuration=[
                ec2.SubnetConfiguration(
                    subnet_type=ec2.SubnetType.PUBLIC,
                    name="Public",
                    cidr_mask=24,
                ),
                ec2.SubnetConfiguration(
                    subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS,
                    name="Private",
                    cidr_mask=24,
                ),
            ],
        )

    def _create_cluster(self) -> ecs.Cluster:
        """Create ECS cluster."""
        return ecs.Cluster(self, "Cluster", vpc=self.vpc)

    def _create_task_role(self) -> iam.Role:
        """Create IAM role for the application task."""
        task_role = iam.Role(
            self,
            "AppRole",
            assumed_by=iam.ServicePrincipal("ecs-tasks.amazonaws.com"),
        )

        # Allow the application to ship logs and metrics
        task_role.add_to_policy(
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                actions=[
                    "logs:*",
                    "cloudwatch:*",
                ],
                resources=["*"],
            )
        )

        return task_role

    def _create_task_definition(self) -> ecs.TaskDefinition:
        """Create EC2-compatible task definition."""
        task_definition = ecs.TaskDefinition(
            self,
            "AppTask",
            task_role=self.task_role,
            compatibility=ecs.Compatibility.EC2,
        )
        task_definition.obtain_execution_role()
        return task_definition

    def _create_auto_scaling_group(self) -> autoscaling.AutoScalingGroup:
        """Create auto-scaling group of ECS container instances."""
        logger.debug(
            f"Auto-scaling group of {self.settings.instance_type} "
            f"({self.settings.asg_min_capacity}..{self.settings.asg_max_capacity})"
        )
        return autoscaling.AutoScalingGroup(
            self,
            "ASG",
            instance_type=ec2.InstanceType(self.settings.instance_type),
            machine_image=ecs.EcsOptimizedImage.amazon_linux2(),
            associate_public_ip_address=True,
            max_capacity=self.settings.asg_max_capacity,
            desired_capacity=self.settings.asg_desired_capacity,
            min_capacity=self.settings.asg_min_capacity,
            vpc=self.vpc,
            vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PUBLIC),
            new_instances_protected_from_scale_in=False,
        )

    def _create_capacity_provider(self) -> ecs.AsgCapacityProvider:
        """Create capacity provider and register it on the cluster."""
        capacity_provider = ecs.AsgCapacityProvider(
            self,
            "EC2CapacityProvider",
            auto_scaling_group=self.asg,
            enable_managed_scaling=True,
            enable_managed_termination_protection=False,
            target_capacity_percent=self.settings.target_capacity_percent,
        )

        self.cluster.add_asg_capacity_provider(capacity_provider)

        return capacity_provider

    def _create_service(self) -> ecs.Ec2Service:
        """Create ECS service scheduled through the capacity provider."""
        return ecs.Ec2Service(
            self,
            "AppService",
            task_definition=self.task_definition,
            cluster=self.cluster,
            desired_count=self.settings.service_desired_count,
            min_healthy_percent=self.settings.service_min_healthy_percent,
            capacity_provider_strategies=[
                ecs.CapacityProviderStrategy(
                    capacity_provider=self.capacity_provider.capacity_provider_name,
                    weight=1,
                    base=0,
                )
            ],
        )

    def _add_container(self) -> ecs.ContainerDefinition:
        """Add the application container to the task definition."""
        container = self.task_definition.add_container(
            "AppContainer",
            linux_parameters=ecs.LinuxParameters(self, "AppLinuxParams"),
            image=container_image_from_source(
                self.settings.app_source_dir, self.settings.container_port
            ),
            logging=ecs.LogDriver.aws_logs(
                stream_prefix=self.settings.log_stream_prefix,
                log_retention=self.settings.log_retention_days,
            ),
            environment={
                "NODE_ENV": self.settings.node_env,
            },
            memory_reservation_mib=self.settings.memory_reservation_mib,
        )

        container.add_port_mappings(
            ecs.PortMapping(
                container_port=self.settings.container_port,
                host_port=self.settings.container_port,
                protocol=ecs.Protocol.TCP,
            )
        )

        return container

    def _import_certificate(self) -> acm.ICertificate:
        """Reference the existing ACM certificate for the HTTPS listener."""
        if not self.settings.app_certificate_arn:
            raise ValueError(
                "APP_CERTIFICATE_ARN must be set to create the HTTPS listener"
            )

        return acm.Certificate.from_certificate_arn(
            self,
            "AppCertificate",
            self.settings.app_certificate_arn,
        )

    def _create_load_balancer(self) -> elbv2.ApplicationLoadBalancer:
        """Create Application Load Balancer."""
        load_balancer = elbv2.ApplicationLoadBalancer(
            self,
            "AppLoadBalancer",
            vpc=self.vpc,
            internet_facing=True,
            vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PUBLIC),
        )

        load_balancer.add_redirect(
            source_port=self.settings.http_port,
            source_protocol=elbv2.ApplicationProtocol.HTTP,
            target_port=self.settings.https_port,
            target_protocol=elbv2.ApplicationProtocol.HTTPS,
        )

        load_balancer.connections.allow_to_any_ipv4(ec2.Port.all_tcp(), "All Out")

        return load_balancer

    def _create_https_listener(self) -> elbv2.ApplicationListener:
        """Create HTTPS listener forwarding to the service."""
        listener = self.load_balancer.add_listener(
            "Listener",
            port=self.settings.https_port,
            certificates=[
                elbv2.ListenerCertificate.from_certificate_manager(self.certificate)
            ],
            protocol=elbv2.ApplicationProtocol.HTTPS,
        )

        listener.add_targets(
            "AppTarget",
            health_check=elbv2.HealthCheck(
                enabled=True,
                protocol=elbv2.Protocol.HTTP,
            ),
            port=self.settings.container_port,
            deregistration_delay=cdk.Duration.seconds(
                self.settings.deregistration_delay_seconds
            ),
            protocol=elbv2.ApplicationProtocol.HTTP,
            targets=[self.service],
        )

        return listener

    def _setup_ingress(self) -> None:
        """Open the load balancer to the internet and the instances to the load balancer."""
        self.load_balancer.connections.allow_from_any_ipv4(
            ec2.Port.tcp(self.settings.http_port),
            "Ingress HTTP internet",
        )
        self.load_balancer.connections.allow_from_any_ipv4(
            ec2.Port.tcp(self.settings.https_port),
            "Ingress HTTPS internet",
        )

        # Bridge networking: the load balancer reaches the host port directly
        for subnet in self.vpc.public_subnets:
            self.asg.connections.allow_from(
                ec2.Peer.ipv4(subnet.ipv4_cidr_block),
                ec2.Port.tcp(self.settings.container_port),
                "Ingress from ALB to App",
            )

    def _create_dns_record(self) -> route53.ARecord:
        """Create alias record pointing at the load balancer."""
        hosted_zone = route53.HostedZone.from_lookup(
            self,
            "HostedZone",
            domain_name=self.settings.domain_name,
        )

        logger.info(f"Aliasing {self.settings.record_fqdn} to the load balancer")
        return route53.ARecord(
            self,
            "AppARecord",
            zone=hosted_zone,
            target=route53.RecordTarget.from_alias(
                route53_targets.LoadBalancerTarget(self.load_balancer)
            ),
            record_name=self.settings.record_name,
        )

    def _add_outputs(self) -> None:
        """Export the load balancer address, application URL and cluster name."""
        cdk.CfnOutput(
            self,
            "LoadBalancerDNS",
            value=self.load_balancer.load_balancer_dns_name,
            description="Application Load Balancer DNS name",
        )

        cdk.CfnOutput(
            self,
            "AppURL",
            value=self.settings.app_url,
            description="Public URL of the application",
        )

        cdk.CfnOutput(
            self,
            "ClusterName",
            value=self.cluster.cluster_name,
            description="ECS cluster running the application",
        )
